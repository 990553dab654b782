from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """
    API request model for the /query endpoint.

    This is the external contract: clients send this.
    """
    query: str = Field(..., min_length=1, description="Natural-language question")
