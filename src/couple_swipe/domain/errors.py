"""Errors raised by the couple session coordinator."""


class CoupleModeError(Exception):
    """Base class for coordinator errors."""

    error_code = "couple_mode_error"
    user_message = "Something went wrong."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(detail or self.user_message)


class SessionNotFound(CoupleModeError):
    """No session matches the code or id in an eligible state."""

    error_code = "session_not_found"
    user_message = "That session code is invalid or has expired."


class InvalidSessionCode(SessionNotFound):
    """The code is not exactly six ASCII digits."""


class SelfJoinRejected(CoupleModeError):
    """The creator tried to join their own session."""

    error_code = "self_join_rejected"
    user_message = "You can't join your own session."


class SessionAlreadyJoined(CoupleModeError):
    """Another user already holds the partner slot."""

    error_code = "session_already_joined"
    user_message = "Someone else has already joined this session."


class SessionNotActive(CoupleModeError):
    """The session is not accepting swipes."""

    error_code = "session_not_active"
    user_message = "This session is no longer active."


class NotAParticipant(CoupleModeError):
    """The user is neither the creator nor the partner."""

    error_code = "not_a_participant"
    user_message = "You are not part of this session."


class CodeSpaceExhausted(CoupleModeError):
    """No unused session code was found within the attempt budget."""

    error_code = "code_space_exhausted"
    user_message = "Couldn't create a session right now. Please try again later."


class StoreUnavailable(CoupleModeError):
    """The durable store could not be reached or failed."""

    error_code = "store_unavailable"
    user_message = "The service is temporarily unavailable. Please try again."


class TransportUnavailable(CoupleModeError):
    """An event transport could not deliver a publish."""

    error_code = "transport_unavailable"
    user_message = "Live updates are temporarily unavailable."
