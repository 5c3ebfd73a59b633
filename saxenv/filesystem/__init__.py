"""
Modules that give cells one file system view over local disks and object stores.

Cells keep their metadata (membership, published addresses, leader state) under a
root directory that may live on a local disk or in an S3 compatible object store.
Coordination logic shouldn't care which one it is, so all access goes through paths:

* "/local/dir/file" is a plain local path.
* "/s3/bucket/dir/file" is the object "dir/file" in "bucket".

Users configure the root as "s3://bucket/dir", which is converted to the "/s3/" form
once when the root is resolved. From there on paths are joined and passed around as
ordinary strings.

The two backends differ in ways that the service papers over:

* Object stores have no directories. A directory is represented by an empty METADATA
object inside it, and only that object makes it exist.
* Object writes are atomic on their own, while local writes go through a temporary
file and a rename to get the same guarantee.
"""

from .common import Backend, is_remote, Path, to_internal
from .remote import RemoteStore
from .service import FileSystemService

__all__ = [
    "Backend",
    "FileSystemService",
    "Path",
    "RemoteStore",
    "is_remote",
    "to_internal",
]
