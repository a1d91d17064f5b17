import httpx


class ChatAPIError(Exception):
    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(ChatAPIError):
    pass


class AuthError(ChatAPIError):
    pass


class NotFoundError(ChatAPIError):
    pass


class ConflictError(ChatAPIError):
    pass


class UnavailableError(ChatAPIError):
    pass


class TransportError(ChatAPIError):
    """The request never got an HTTP answer."""


_BY_STATUS = {
    400: ValidationError,
    401: AuthError,
    403: AuthError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    503: UnavailableError,
}


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return response.reason_phrase


def raise_for_response(response: httpx.Response) -> None:
    if response.is_success:
        return
    error_type = _BY_STATUS.get(response.status_code, ChatAPIError)
    raise error_type(_detail(response), status_code=response.status_code)
