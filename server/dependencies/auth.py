import secrets

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Verify the X-API-Key header against APP_API_KEY.

    Only answers "is there an authenticated principal"; there are no roles.

    Raises:
        HTTPException: 401 if the key is missing, wrong, or no key is configured.
    """
    helper_config = request.app.state.helper_config
    expected_key = helper_config.get_string_val("APP_API_KEY", default="")
    if not expected_key:
        helper_config.get_logger().warning("APP_API_KEY is not set: authenticated routes are closed.")
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    if not x_api_key or not secrets.compare_digest(x_api_key.encode(), expected_key.encode()):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
