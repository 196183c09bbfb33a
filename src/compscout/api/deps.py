"""
Shared endpoint dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from compscout.runtime import StageRuntime


def get_runtime(request: Request) -> StageRuntime:
    return request.app.state.runtime


Runtime = Annotated[StageRuntime, Depends(get_runtime)]
