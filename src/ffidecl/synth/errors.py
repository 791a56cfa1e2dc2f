from __future__ import annotations


class FfiDeclError(Exception):
    pass


class DescriptorError(FfiDeclError):
    pass


class KnowledgeError(FfiDeclError):
    pass


class ScopeError(FfiDeclError):
    pass
