from .project_serializer import (
    DecodeResult,
    Diagnostic,
    EncodeResult,
    SaveResult,
    decode_project,
    default_filename,
    dumps_project,
    encode_project,
    load_project,
    save_project,
)

__all__ = [
    "DecodeResult",
    "Diagnostic",
    "EncodeResult",
    "SaveResult",
    "decode_project",
    "default_filename",
    "dumps_project",
    "encode_project",
    "load_project",
    "save_project",
]
