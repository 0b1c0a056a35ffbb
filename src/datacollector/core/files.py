"""数据目录下的文件读写."""

import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class FileStore:
    """以数据目录为根的 UTF-8 文件存储.

    路径一律使用相对数据目录的 POSIX 形式；历史数据中的绝对路径原样使用。
    读取和删除不存在的文件不会报错。
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def resolve(self, path: str) -> Path:
        """相对路径转绝对路径."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.root / PurePosixPath(path)

    def relative(self, path: Path) -> str:
        """绝对路径转相对数据目录的路径；不在数据目录下时返回原路径."""
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def exists(self, path: str) -> bool:
        """文件是否存在."""
        return self.resolve(path).is_file()

    def write(self, path: str, text: str) -> str:
        """写入文件（自动创建目录），返回相对路径."""
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        return self.relative(target)

    def read(self, path: str) -> str | None:
        """读取文件，不存在时返回 None."""
        target = self.resolve(path)
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def delete(self, path: str) -> bool:
        """删除文件，不存在时返回 False."""
        target = self.resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.info(f"文件已不存在，跳过删除: {path}")
            return False
        return True
