"""Source strings and remote references."""
from repo_degit.source.descriptor import HOST_DOMAINS, SourceDescriptor, parse_source
from repo_degit.source.refs import (
    Reference,
    default_branch,
    parse_ls_remote_output,
    resolve_ref,
)

__all__ = [
    "HOST_DOMAINS",
    "Reference",
    "SourceDescriptor",
    "default_branch",
    "parse_ls_remote_output",
    "parse_source",
    "resolve_ref",
]
