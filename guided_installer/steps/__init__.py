from .step_20_reclaim_disk import ReclaimDiskStep
from .step_30_partition_fs import PartitionFilesystemStep
from .step_40_resolve_mirrors import ResolveMirrorsStep
from .step_50_provision_packages import ProvisionPackagesStep
from .step_55_write_fstab import FstabResult, WriteFstabStep
from .step_60_configure_system import ConfigureResult, ConfigureSystemStep
from .step_70_install_bootloader import InstallBootloaderStep
from .step_90_finalize import FinalizeResult, FinalizeStep

__all__ = [
    "ReclaimDiskStep",
    "PartitionFilesystemStep",
    "ResolveMirrorsStep",
    "ProvisionPackagesStep",
    "WriteFstabStep",
    "FstabResult",
    "ConfigureSystemStep",
    "ConfigureResult",
    "InstallBootloaderStep",
    "FinalizeStep",
    "FinalizeResult",
]
