"""Domain-specific errors for devflasher."""


class FlasherError(Exception):
    """Base error for devflasher."""


class ConfigurationError(FlasherError):
    """Raised when the working directory or device set cannot be flashed as given."""


class NoBundlesError(ConfigurationError):
    """Raised when no factory image archive is found."""


class DuplicateBundleError(ConfigurationError):
    """Raised when two factory image archives resolve to the same codename."""


class NoDevicesError(ConfigurationError):
    """Raised when no connected device matches a factory image."""


class AmbiguousDevicesError(ConfigurationError):
    """Raised when several devices are connected without parallel mode."""


class CatalogError(FlasherError):
    """Base device catalog error."""


class CatalogLoadError(CatalogError):
    """Raised when reading a device catalog file fails."""


class CatalogValidationError(CatalogError):
    """Raised when a device catalog file does not conform to schema or semantics."""


class ArchiveError(FlasherError):
    """Raised when a zip archive cannot be read or extracted."""


class UnsafeArchiveError(ArchiveError):
    """Raised when an archive entry would be written outside its destination."""


class ProvisioningError(FlasherError):
    """Base platform tools provisioning error."""


class DownloadError(ProvisioningError):
    """Raised when the platform tools archive cannot be downloaded."""


class ChecksumMismatchError(ProvisioningError):
    """Raised when the platform tools archive does not match its pinned SHA-256."""


class ToolLaunchError(ProvisioningError):
    """Raised when a platform tool cannot be started."""


class DeviceError(FlasherError):
    """Base error for failures confined to a single device pipeline."""


class UnlockFailedError(DeviceError):
    """Raised when a bootloader stays locked after the allowed attempts."""


class FlashFailedError(DeviceError):
    """Raised when the vendor flashing script fails or cannot be launched."""
