from typing import Any

import orjson

from reqchain.context import Context


def json_body(ctx: Context) -> Any:
    assert isinstance(ctx.response_body, bytes)
    return orjson.loads(ctx.response_body)
