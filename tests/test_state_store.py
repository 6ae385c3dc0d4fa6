"""Tests for the state store — proves accounts and pending purchases survive a restart."""

import json
import pytest
from datetime import datetime, timezone
from pathlib import Path

from famcoin.models.account import Account, AccountMode, AccountSettings
from famcoin.models.purchase import PurchaseRequest, PurchaseStatus
from famcoin.persistence.state_store import SCHEMA_VERSION, StateStore


def _now() -> datetime:
    return datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def _account(member_id: str = "liam") -> Account:
    return Account(
        member_id=member_id,
        member_name=member_id.title(),
        age=10,
        mode=AccountMode.STANDARD,
        balances={"spending": 70, "savings": 30},
        settings=AccountSettings(auto_split={"spending": 70, "savings": 30}),
        total_balance=100,
        created_utc=_now(),
    )


class TestInMemory:
    def test_save_and_get(self) -> None:
        store = StateStore()
        store.save_account(_account())
        assert "liam" in store
        assert len(store) == 1
        assert store.get_account("liam").total_balance == 100
        assert store.get_account("mia") is None

    def test_flush_without_path_is_noop(self) -> None:
        store = StateStore()
        store.save_account(_account())
        store.flush()
        assert store.is_durable is False


class TestDurable:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = StateStore(storage_path=path)
        store.save_account(_account("liam"))
        store.save_account(_account("mia"))
        store.pending.enqueue(PurchaseRequest(
            purchase_id="pur_1", member_id="liam", member_name="Liam",
            item="Lego", amount=60, from_sub_account="spending", requested_utc=_now(),
        ))
        store.flush()

        reloaded = StateStore(storage_path=path)
        assert reloaded.is_durable
        assert sorted(a.member_id for a in reloaded.accounts()) == ["liam", "mia"]
        liam = reloaded.get_account("liam")
        assert list(liam.balances) == ["spending", "savings"]
        assert liam.created_utc == _now()
        assert reloaded.pending.status_of("pur_1") == PurchaseStatus.PENDING
        assert not path.with_suffix(".json.tmp").exists()

    def test_failed_flush_leaves_no_temp_file(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = StateStore(storage_path=path)
        store.save_account(_account())
        store.flush()
        before = path.read_text(encoding="utf-8")

        broken = _account("mia")
        broken.member_name = _now()
        store.save_account(broken)
        with pytest.raises(TypeError):
            store.flush()
        assert not path.with_suffix(".json.tmp").exists()
        assert path.read_text(encoding="utf-8") == before

    def test_schema_version_checked(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"schema_version": SCHEMA_VERSION + 1}), encoding="utf-8")
        with pytest.raises(ValueError, match="schema version"):
            StateStore(storage_path=path)

    def test_corrupt_account_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        record = _account().to_dict()
        record["total_balance"] = 999
        path.write_text(
            json.dumps({"schema_version": SCHEMA_VERSION, "accounts": [record]}),
            encoding="utf-8",
        )
        with pytest.raises(ValueError, match="Corrupt account liam"):
            StateStore(storage_path=path)
