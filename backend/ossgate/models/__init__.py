from ossgate.models.download_link import DownloadLink

__all__ = [
    "DownloadLink",
]
