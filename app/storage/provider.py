from typing import BinaryIO, Optional


class StorageProvider:
    def get_download_url(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def copy_in(self, src: bytes | BinaryIO, key: str) -> None:
        raise NotImplementedError

    def read(self, key: str) -> Optional[bytes]:
        raise NotImplementedError
