import sys
from getpass import getpass

import uvicorn

from ossgate.core.config import get_settings
from ossgate.core.security import hash_operator_password


def print_password_hash() -> None:
    """Prompt for an operator password and print the ADMIN_PASSWORD_HASH value."""
    password = getpass("Operator password: ")
    if password != getpass("Repeat password: "):
        sys.exit("Passwords do not match")
    print(hash_operator_password(password))


if __name__ == "__main__":
    if sys.argv[1:2] == ["hash-password"]:
        print_password_hash()
        sys.exit(0)

    settings = get_settings()
    # Single worker: the ticket cache lives in process memory.
    uvicorn.run(
        "ossgate.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
