from pydantic import BaseModel, Field


class ExecutorSettings(BaseModel):
    timeout: float = Field(
        30.0,
        gt=0,
        description="Timeout in seconds applied to each transport call.",
    )
    follow_redirects: bool = True

    # None keeps retrying for as long as the credentials provider hands out credentials
    max_attempts: int | None = Field(
        None,
        ge=1,
        description="Upper bound on transport calls per request when the server keeps answering 401/403/504.",
    )
