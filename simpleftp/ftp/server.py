"""FTP server descriptor for SimpleFTP."""

from dataclasses import dataclass, field

from simpleftp.utils.validators import validate_host, validate_port, validate_timeout, validate_user


DEFAULT_FTP_PORT = 21


@dataclass(frozen=True)
class FTPServer:
    """
    Identity and credentials of an FTP server.

    Immutable so it can be shared between a connection and its temporary
    siblings. The password takes no part in equality or repr.
    """
    host: str
    user: str = "anonymous"
    password: str = field(default="", repr=False, compare=False)
    port: int = DEFAULT_FTP_PORT
    timeout: int = 30
    passive_mode: bool = True

    def __post_init__(self):
        """Validate descriptor after initialization."""
        for is_valid, error in (
            validate_host(self.host),
            validate_user(self.user),
            validate_port(self.port),
            validate_timeout(self.timeout),
        ):
            if not is_valid:
                raise ValueError(error)

    def __str__(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"
