"""
Command line tests. The service is built on mock providers; nothing touches
the network.
"""

import json
from unittest.mock import patch

import pytest

from conviction.core.cache import Cache, MemoryStore
from conviction.core.db_writer import AnalysisStore
from conviction.core.market_data import MarketDataGateway
from conviction.core.models import MS_PER_DAY, Chain, PricePoint
from conviction.core.position_analyzer import PositionAnalyzer
from conviction.core.scoring import ConvictionScorer
from conviction.core.service import ConvictionService
from conviction.main import main, parse_args
from conviction.tests.conftest import T0, MockMarketProvider

SOL = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
EXIT = T0 + 10 * MS_PER_DAY


def build_service() -> ConvictionService:
    cache = Cache(store=MemoryStore(max_size=50))
    birdeye = MockMarketProvider(
        "birdeye",
        prices={"TOKEN": 3.0},
        history={"TOKEN": [PricePoint(EXIT + MS_PER_DAY, 4.0)]},
    )
    gateway = MarketDataGateway(cache, birdeye=birdeye)
    return ConvictionService(
        cache=cache,
        gateway=gateway,
        analyzer=PositionAnalyzer(gateway),
        scorer=ConvictionScorer(),
    )


@pytest.fixture
def ledger_file(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps([{
        "tokenAddress": "TOKEN",
        "tokenSymbol": "TKN",
        "entries": [{"hash": "b1", "timestamp": T0, "amount": 100, "priceUsd": 1.0, "valueUsd": 100}],
        "exits": [{"hash": "s1", "timestamp": EXIT, "amount": 100, "priceUsd": 2.0, "valueUsd": 200}],
    }]))
    return path


@pytest.fixture
def quiet_env(tmp_path):
    with patch.dict("os.environ", {"CONVICTION_DB_PATH": str(tmp_path / "default.db")}, clear=True):
        yield


@pytest.fixture
def mocked_service():
    with patch("conviction.main.ConvictionService.from_config", side_effect=lambda **_: build_service()):
        yield


def test_parse_args_analyze():
    args = parse_args(["analyze", "--address", SOL, "--chain", "base", "--ledger", "l.json", "--no-trust"])
    assert args.command == "analyze"
    assert args.chain == "base"
    assert args.no_trust is True
    assert args.save is False


def test_parse_args_rejects_unknown_chain():
    with pytest.raises(SystemExit):
        parse_args(["analyze", "--address", SOL, "--chain", "ethereum", "--ledger", "l.json"])


def test_config_command(quiet_env, capsys):
    assert main(["config"]) == 0
    assert "Patience Window" in capsys.readouterr().out


def test_analyze_prints_summary(quiet_env, mocked_service, ledger_file, capsys):
    code = main(["analyze", "--address", SOL, "--chain", "solana",
                 "--ledger", str(ledger_file), "--no-trust"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Archetype:" in out
    assert "[EARLY EXIT]" in out
    assert "TOKE" in out, "Provider metadata symbol wins over the ledger's"


def test_analyze_json_output(quiet_env, mocked_service, ledger_file, capsys):
    code = main(["analyze", "--address", SOL, "--chain", "solana",
                 "--ledger", str(ledger_file), "--no-trust", "--json"])

    data = json.loads(capsys.readouterr().out)
    assert code == 0
    assert data["chain"] == "solana"
    assert data["metrics"]["patienceTax"] == 200
    assert data["trust"] is None


def test_analyze_save_then_history(quiet_env, mocked_service, ledger_file, tmp_path, capsys):
    db = str(tmp_path / "analyses.db")
    main(["analyze", "--address", SOL, "--chain", "solana", "--ledger", str(ledger_file),
          "--no-trust", "--save", "--db", db])
    assert "Saved analysis #1" in capsys.readouterr().out

    stored = AnalysisStore(db).get_analyses_by_address(SOL)
    assert len(stored) == 1
    assert stored[0]["time_horizon"] == 90

    assert main(["history", "--address", SOL, "--db", db]) == 0
    assert "#1" in capsys.readouterr().out


def test_history_without_rows(quiet_env, tmp_path, capsys):
    assert main(["history", "--address", SOL, "--db", str(tmp_path / "empty.db")]) == 0
    assert "No stored analyses" in capsys.readouterr().out


def test_missing_ledger_is_an_error(quiet_env, mocked_service, tmp_path, capsys):
    code = main(["analyze", "--address", SOL, "--chain", "solana",
                 "--ledger", str(tmp_path / "missing.json"), "--no-trust"])
    assert code == 2
    assert "Ledger file not found" in capsys.readouterr().err


def test_malformed_ledger_is_an_error(quiet_env, mocked_service, tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps([{"tokenAddress": "TOKEN", "entries": []}]))

    code = main(["analyze", "--address", SOL, "--chain", Chain.SOLANA.value,
                 "--ledger", str(path), "--no-trust"])

    assert code == 2
    assert "invalid ledger" in capsys.readouterr().err
