from .header import (
    GridMetadata,
    copy_header,
    read_grid_metadata,
    read_header_field,
)
from .loader import (
    load_response_file,
    load_response_df,
    read_spectrum,
    write_spectrum,
    spectrum_paths,
)

__all__ = [
    "GridMetadata",
    "copy_header",
    "read_grid_metadata",
    "read_header_field",
    "load_response_file",
    "load_response_df",
    "read_spectrum",
    "write_spectrum",
    "spectrum_paths",
]
