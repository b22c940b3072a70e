"""
A simple CLI for running the dashboard API and storing a session.
"""

import asyncio
import os
import sys

import uvicorn

USAGE = (
    "Only supported commands are zaron run dev, zaron run prod, "
    "zaron register {token} or zaron whoami"
)


def run_server(**kwargs):
    for k, v in kwargs.items():
        os.environ[k] = v

    uvicorn.run("zaron.api.app:app", host="0.0.0.0")


async def whoami(settings) -> str:
    from zaron.toolkit.client import BackendClient, SessionStore

    session = SessionStore(settings.session_file).deserialize()

    async with BackendClient(
        settings.backend_base_url, session, timeout=settings.request_timeout
    ) as client:
        content = await client.my_permissions()

    lines = [f"{content.user_name} <{content.email}> ({content.role})"]
    lines += [
        f"  {p.resource}: {', '.join(sorted(p.actions))}"
        for p in content.effective_permissions
    ]
    return "\n".join(lines)


def main():
    try:
        command = sys.argv[1]
    except IndexError:
        print(USAGE)
        exit(1)

    if command == "run":
        try:
            mode = sys.argv[2]
        except IndexError:
            print(USAGE)
            exit(1)

        if mode == "dev":
            from zaron.config.settings import Settings

            settings = Settings(use_mock_backend=True)
            print(
                f"Serving against the in-memory backend, use the bearer token "
                f"'{settings.mock_token}' to act as the super admin"
            )
            run_server(ZARON_USE_MOCK_BACKEND="True")
        elif mode == "prod":
            run_server()
        else:
            print(USAGE)
            exit(1)

    elif command == "register":
        from zaron.config.settings import Settings
        from zaron.toolkit.client import Session, SessionStore

        try:
            token = sys.argv[2]
        except IndexError:
            print(USAGE)
            exit(1)

        settings = Settings()
        location = SessionStore(settings.session_file).serialize(
            Session(access_token=token)
        )
        print(f"Session stored at {location}")

    elif command == "whoami":
        from zaron.config.settings import Settings
        from zaron.toolkit.client import (
            BackendError,
            BackendUnavailable,
            SessionNotFound,
        )

        try:
            print(asyncio.run(whoami(Settings())))
        except (SessionNotFound, BackendError, BackendUnavailable) as e:
            print(e)
            exit(1)

    else:
        print(USAGE)
        exit(1)
