from openai import OpenAI


def get_openai_client(api_key: str) -> OpenAI:
    """Return an OpenAI client bound to one session's bearer token.

    Not cached: a key must not outlive the session that holds it.
    """
    return OpenAI(api_key=api_key)
