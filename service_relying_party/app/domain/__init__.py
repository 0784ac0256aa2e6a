"""
Relying party domain: data model, orchestration of platform calls and
normalization of sign-in responses.

Import the submodules directly; this package stays import-light so the
adapters can depend on ``domain.models`` without cycles.
"""
