class ZKPAuthError(Exception):
    """Base class for protocol failures reported to the remote caller"""
    kind = "ZKPAuthError"
    status_code = 500


class NotInitialized(ZKPAuthError):
    kind = "NotInitialized"
    status_code = 503


class UserNotFound(ZKPAuthError):
    kind = "UserNotFound"
    status_code = 404


class ChallengeNotFound(ZKPAuthError):
    kind = "ChallengeNotFound"
    status_code = 404


class MalformedInput(ZKPAuthError):
    kind = "MalformedInput"
    status_code = 400


class StaleParameters(ZKPAuthError):
    """A stored record was created under group parameters that have since been replaced"""
    kind = "StaleParameters"
    status_code = 409


class GroupGenerationError(ZKPAuthError):
    kind = "GroupGenerationError"


ERROR_KINDS = {
    cls.kind: cls
    for cls in (NotInitialized, UserNotFound, ChallengeNotFound,
                MalformedInput, StaleParameters, GroupGenerationError)
}
