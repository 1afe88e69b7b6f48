"""
Shared fixtures.

Every test gets its own SQLite file and a sandbox processor. Async scenarios
run through ``harness.run`` so the engine lives and dies inside one event loop.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest

from draftboard.config import Settings
from draftboard.container import Services, build_services
from draftboard.database import create_engine, create_session_factory, init_models
from draftboard.services.processor import ProcessorClient, ProcessorConfig

from tests.helpers import WEBHOOK_SECRET


def make_settings(tmp_path: Path, **processor_options: Any) -> Settings:
    options = {
        "force_sandbox": True,
        "webhook_secret": WEBHOOK_SECRET,
        "transfers_settle_synchronously": True,
    }
    options.update(processor_options)
    return Settings(
        environment="test",
        data_dir=tmp_path,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'draftboard.db'}",
        logfire_token="",
        processor=ProcessorConfig(**options),
    )


class Harness:
    def __init__(self, tmp_path: Path):
        self.tmp_path = tmp_path

    def run(
        self,
        scenario: Callable[[Services], Awaitable[Any]],
        processor_class: type[ProcessorClient] = ProcessorClient,
        **processor_options: Any,
    ) -> Any:
        settings = make_settings(self.tmp_path, **processor_options)

        async def _main():
            engine = create_engine(settings)
            await init_models(engine)
            services = build_services(
                settings,
                create_session_factory(engine),
                processor_class(settings.processor),
            )
            try:
                return await scenario(services)
            finally:
                await engine.dispose()

        return asyncio.run(_main())


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)
