"""
Cloud image catalog

Static, read-only reference data: which operating systems can be provisioned,
where their cloud images live, and the guest identity they default to.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping

from .error_handling import UnknownOSError


@dataclass(frozen=True)
class CatalogEntry:
    """One selectable OS/version combination and its image source"""
    label: str
    family: str
    codename: str
    image_url: str
    default_hostname: str
    default_username: str
    default_password: str


_ENTRIES = (
    CatalogEntry("Ubuntu 22.04", "ubuntu", "jammy",
                 "https://cloud-images.ubuntu.com/jammy/current/jammy-server-cloudimg-amd64.img",
                 "ubuntu22", "ubuntu", "ubuntu"),
    CatalogEntry("Ubuntu 24.04", "ubuntu", "noble",
                 "https://cloud-images.ubuntu.com/noble/current/noble-server-cloudimg-amd64.img",
                 "ubuntu24", "ubuntu", "ubuntu"),
    CatalogEntry("Debian 11", "debian", "bullseye",
                 "https://cloud.debian.org/images/cloud/bullseye/latest/debian-11-generic-amd64.qcow2",
                 "debian11", "debian", "debian"),
    CatalogEntry("Debian 12", "debian", "bookworm",
                 "https://cloud.debian.org/images/cloud/bookworm/latest/debian-12-generic-amd64.qcow2",
                 "debian12", "debian", "debian"),
    CatalogEntry("Fedora 40", "fedora", "40",
                 "https://download.fedoraproject.org/pub/fedora/linux/releases/40/Cloud/x86_64/images/Fedora-Cloud-Base-40-1.14.x86_64.qcow2",
                 "fedora40", "fedora", "fedora"),
    CatalogEntry("CentOS Stream 9", "centos", "stream9",
                 "https://cloud.centos.org/centos/9-stream/x86_64/images/CentOS-Stream-GenericCloud-9-latest.x86_64.qcow2",
                 "centos9", "centos", "centos"),
    CatalogEntry("AlmaLinux 9", "almalinux", "9",
                 "https://repo.almalinux.org/almalinux/9/cloud/x86_64/images/AlmaLinux-9-GenericCloud-latest.x86_64.qcow2",
                 "almalinux9", "alma", "alma"),
    CatalogEntry("Rocky Linux 9", "rockylinux", "9",
                 "https://download.rockylinux.org/pub/rocky/9/images/x86_64/Rocky-9-GenericCloud.latest.x86_64.qcow2",
                 "rocky9", "rocky", "rocky"),
)

OS_CATALOG: Mapping[str, CatalogEntry] = MappingProxyType({entry.label: entry for entry in _ENTRIES})


def resolve(os_label: str) -> CatalogEntry:
    """
    Look up a catalog entry by its label (e.g. "Ubuntu 24.04")

    Raises:
        UnknownOSError: The label is not in the catalog
    """
    try:
        return OS_CATALOG[os_label]
    except (KeyError, TypeError):
        raise UnknownOSError(str(os_label))


def list_labels() -> List[str]:
    """Catalog labels in display order"""
    return list(OS_CATALOG)
