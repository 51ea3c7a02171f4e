"""configfs-gadget - declarative USB gadget configuration over configfs."""

try:
    from configfs_gadget._version import version as __version__
except ImportError:
    __version__ = "0.0.0.dev0"
