from __future__ import annotations

import random
from types import SimpleNamespace

import pytest

from raffle_bot.engine import RaffleEngine
from raffle_bot.giveaways import GiveawayService
from raffle_bot.minis import MiniRaffleOrchestrator
from raffle_bot.reservations import ReservationLedger
from raffle_bot.storage import (
    DocumentStore,
    GiveawayRepository,
    MiniRepository,
    RaffleRepository,
)
from tests.fakes import FakeClock, MemoryBackend


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> DocumentStore:
    document_store = DocumentStore(backend)
    document_store.load()
    return document_store


@pytest.fixture
def services(store: DocumentStore, clock: FakeClock) -> SimpleNamespace:
    rng = random.Random(1234)
    raffles = RaffleRepository(store)
    minis = MiniRepository(store)
    ledger = ReservationLedger(store, clock=clock)
    engine = RaffleEngine(store, raffles, ledger, minis, clock=clock, rng=rng)
    orchestrator = MiniRaffleOrchestrator(
        store, engine, raffles, ledger, minis, clock=clock, rng=rng
    )
    giveaways = GiveawayService(store, GiveawayRepository(store), clock=clock, rng=rng)
    return SimpleNamespace(
        store=store,
        clock=clock,
        rng=rng,
        raffles=raffles,
        minis_repo=minis,
        ledger=ledger,
        engine=engine,
        minis=orchestrator,
        giveaways=giveaways,
    )
