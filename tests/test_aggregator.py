"""Tests for the swap aggregator."""

import asyncio

import pytest

from conftest import ETH, USDC, FakeProvider, FakeSender, make_token
from multiswap.aggregator import SwapAggregator
from multiswap.chains import DOGE_ADDRESS
from multiswap.config import Settings
from multiswap.errors import ProviderError, UnknownProviderError
from multiswap.providers.base import ProviderName, QuoteRequest, Token
from multiswap.telemetry import (
    NullEmitter,
    RecordingEmitter,
    SpanEventEmitter,
    drain_pending,
)


def build(providers, chain="ETH", settings=None, emitter=None):
    return SwapAggregator(
        FakeSender(),
        chain,
        providers=providers,
        emitter=emitter,
        settings=settings or Settings(_env_file=None),
    )


def four_providers(overrides=None):
    """Four adapters in default order; overrides map index -> FakeProvider."""
    overrides = overrides or {}
    tags = ["oneinch", "zerox", "paraswap", "changelly"]
    return [overrides.get(i) or FakeProvider(tag) for i, tag in enumerate(tags)]


class TestTokenUniverse:
    """Tests for get_all_tokens."""

    @pytest.mark.asyncio
    async def test_excludes_doge_address_any_case(self):
        """Test the excluded sentinel is dropped regardless of case."""
        base = FakeProvider(
            "oneinch",
            tokens=[make_token(DOGE_ADDRESS.lower(), "DOGE"), make_token("0x01", "AAA")],
        )
        other = FakeProvider("changelly", tokens=[make_token(DOGE_ADDRESS.upper().replace("0X", "0x"), "DOGE2")])
        aggregator = build(four_providers({0: base, 3: other}))

        universe = await aggregator.get_all_tokens()

        symbols = [t.symbol for t in universe.to_tokens]
        assert symbols == ["AAA"]

    @pytest.mark.asyncio
    async def test_base_provider_wins_duplicates(self):
        """Test first-seen wins, keyed by lowercased contract."""
        base = FakeProvider("oneinch", tokens=[make_token("0xAbC", "ABC", "From base")])
        other = FakeProvider(
            "changelly",
            tokens=[make_token("0xabc", "ABC", "From other"), make_token("0xdef", "DEF")],
        )
        aggregator = build(four_providers({0: base, 3: other}))

        universe = await aggregator.get_all_tokens()

        assert list(universe.tokens) == ["0xabc", "0xdef"]
        assert universe.tokens["0xabc"].name == "From base"

    @pytest.mark.asyncio
    async def test_flagship_chain_uses_first_provider_as_base(self):
        """Test ETH seeds from index 0 and merges the cross-chain list."""
        providers = four_providers(
            {
                0: FakeProvider("oneinch", tokens=[make_token("0x01", "A")]),
                3: FakeProvider("changelly", tokens=[make_token("0x02", "B")]),
            }
        )
        aggregator = build(providers, chain="ETH")

        universe = await aggregator.get_all_tokens()

        assert [t.symbol for t in universe.to_tokens] == ["A", "B"]
        assert providers[0].calls == [("get_supported_tokens", None)]

    @pytest.mark.asyncio
    async def test_polygon_alias_is_flagship(self):
        """Test POL is treated as the flagship MATIC chain."""
        providers = four_providers({0: FakeProvider("oneinch", tokens=[make_token("0x01", "A")])})
        aggregator = build(providers, chain="POL")

        universe = await aggregator.get_all_tokens()

        assert universe.tokens["0x01"].symbol == "A"

    @pytest.mark.asyncio
    async def test_non_flagship_base_failure_propagates(self):
        """Test the index 3 base provider failure is raised."""
        providers = four_providers(
            {3: FakeProvider("changelly", token_error=ProviderError("changelly", "down"))}
        )
        aggregator = build(providers, chain="BTC")

        with pytest.raises(ProviderError):
            await aggregator.get_all_tokens()

        # Nothing else is queried before the base list arrives
        assert providers[0].calls == []

    @pytest.mark.asyncio
    async def test_flagship_base_failure_propagates(self):
        """Test the index 0 base provider failure is raised."""
        providers = four_providers(
            {0: FakeProvider("oneinch", token_error=ProviderError("oneinch", "down"))}
        )
        aggregator = build(providers, chain="ETH")

        with pytest.raises(ProviderError):
            await aggregator.get_all_tokens()

    @pytest.mark.asyncio
    async def test_other_provider_failure_is_isolated(self):
        """Test a failing non-base provider does not abort the merge."""
        providers = four_providers(
            {
                0: FakeProvider("oneinch", tokens=[make_token("0x01", "A")]),
                3: FakeProvider("changelly", token_error=RuntimeError("boom")),
            }
        )
        aggregator = build(providers)

        universe = await aggregator.get_all_tokens()

        assert set(universe.tokens) == {"0x01"}

    @pytest.mark.asyncio
    async def test_flagship_merge_skips_evm_aggregators(self):
        """Test ETH merges the base and cross-chain lists only."""
        providers = four_providers(
            {
                0: FakeProvider("oneinch", tokens=[make_token("0x01", "A")]),
                1: FakeProvider("zerox", tokens=[make_token("0x0z", "Z")]),
                2: FakeProvider("paraswap", tokens=[make_token("0x0p", "P")]),
                3: FakeProvider("changelly", tokens=[make_token("0x02", "B")]),
            }
        )
        aggregator = build(providers, chain="ETH")

        universe = await aggregator.get_all_tokens()

        assert list(universe.tokens) == ["0x01", "0x02"]
        assert providers[1].calls == []
        assert providers[2].calls == []

    @pytest.mark.asyncio
    async def test_non_flagship_uses_cross_chain_base_only(self):
        """Test a non-flagship chain lists only the index 3 provider."""
        providers = four_providers(
            {
                0: FakeProvider("oneinch", tokens=[make_token("0x01", "A")]),
                2: FakeProvider("paraswap", tokens=[make_token("0x0p", "P")]),
                3: FakeProvider("changelly", tokens=[make_token("0x02", "B")]),
            }
        )
        aggregator = build(providers, chain="ARB")

        universe = await aggregator.get_all_tokens()

        assert list(universe.tokens) == ["0x02"]
        assert providers[0].calls == []
        assert providers[3].calls == [("get_supported_tokens", None)]

    @pytest.mark.asyncio
    async def test_missing_names_sort_first(self):
        """Test tokens without a name do not break the sort."""
        base = FakeProvider(
            "oneinch",
            tokens=[
                make_token("0x01", "B", "Beta"),
                Token(contract="0x02", symbol="X", name=None),
            ],
        )
        other = FakeProvider("changelly", tokens=[make_token(None, "BTC", "Bitcoin")])
        aggregator = build(four_providers({0: base, 3: other}))

        universe = await aggregator.get_all_tokens()

        assert [t.symbol for t in universe.to_tokens] == ["X", "B", "BTC"]

    @pytest.mark.asyncio
    async def test_unsupported_providers_are_skipped(self):
        """Test providers without network support are never asked."""
        skipped = FakeProvider("changelly", tokens=[make_token("0x02", "B")], supported=False)
        aggregator = build(four_providers({3: skipped}))

        universe = await aggregator.get_all_tokens()

        assert skipped.calls == []
        assert "0x02" not in universe.tokens

    @pytest.mark.asyncio
    async def test_sorting_and_from_tokens(self):
        """Test case-sensitive name sort and contract filter for from_tokens."""
        base = FakeProvider(
            "oneinch",
            tokens=[
                make_token("0x01", "b", "beta"),
                make_token("0x02", "A", "Alpha"),
                make_token("0x03", "Z", "Zeta"),
            ],
        )
        other = FakeProvider("changelly", tokens=[make_token(None, "BTC", "Bitcoin")])
        aggregator = build(four_providers({0: base, 3: other}))

        universe = await aggregator.get_all_tokens()

        # Uppercase sorts before lowercase
        assert [t.name for t in universe.to_tokens] == ["Alpha", "Bitcoin", "Zeta", "beta"]
        assert [t.name for t in universe.from_tokens] == ["Alpha", "Zeta", "beta"]

    @pytest.mark.asyncio
    async def test_contractless_tokens_do_not_collapse(self):
        """Test distinct contract-less assets stay distinct."""
        base = FakeProvider("oneinch")
        other = FakeProvider(
            "changelly",
            tokens=[make_token(None, "BTC", "Bitcoin"), make_token(None, "LTC", "Litecoin")],
        )
        aggregator = build(four_providers({0: base, 3: other}))

        universe = await aggregator.get_all_tokens()

        assert len(universe.to_tokens) == 2
        assert universe.from_tokens == []


class TestQuotes:
    """Tests for get_all_quotes."""

    @pytest.mark.asyncio
    async def test_ranking_is_descending_and_stable(self):
        """Test equal amounts keep concatenation order."""
        first = FakeProvider(
            "oneinch", quotes=[{"amount": "100", "exchange": "A"}, {"amount": "50", "exchange": "B"}]
        )
        second = FakeProvider("zerox", quotes=[{"amount": "100", "exchange": "C"}])
        aggregator = build([first, second])

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")

        assert [(q.amount, q.exchange) for q in quotes] == [("100", "A"), ("100", "C"), ("50", "B")]

    @pytest.mark.asyncio
    async def test_ranking_compares_numerically(self):
        """Test amounts are compared as decimals, not strings."""
        provider = FakeProvider(
            "oneinch",
            quotes=[
                {"amount": "9.5", "exchange": "A"},
                {"amount": "10.25", "exchange": "B"},
                {"amount": "not-a-number", "exchange": "C"},
            ],
        )
        aggregator = build([provider])

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")

        assert [q.exchange for q in quotes] == ["B", "A", "C"]

    @pytest.mark.asyncio
    async def test_exchange_info_enrichment(self):
        """Test known exchanges get their display name, unknown ones their id."""
        provider = FakeProvider(
            "oneinch",
            quotes=[{"amount": "2", "exchange": "ONE_INCH"}, {"amount": "1", "exchange": "SOME_DEX"}],
        )
        aggregator = build([provider])

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")

        assert quotes[0].exchange_info.name == "1inch"
        assert quotes[1].exchange_info.name == "SOME_DEX"

    @pytest.mark.asyncio
    async def test_unknown_exchanges_do_not_share_names(self):
        """Test the default entry is not overwritten by each unknown exchange."""
        provider = FakeProvider(
            "oneinch",
            quotes=[{"amount": "2", "exchange": "DEX_ONE"}, {"amount": "1", "exchange": "DEX_TWO"}],
        )
        aggregator = build([provider])

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")

        assert [q.exchange_info.name for q in quotes] == ["DEX_ONE", "DEX_TWO"]

    @pytest.mark.asyncio
    async def test_failing_provider_is_isolated(self):
        """Test one failing provider does not drop the others' quotes."""
        good = FakeProvider("oneinch", quotes=[{"amount": "5", "exchange": "ONE_INCH"}])
        bad = FakeProvider("zerox", quote_error=ProviderError("zerox", "HTTP 500"))
        aggregator = build([good, bad])

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")

        assert [q.provider for q in quotes] == ["oneinch"]

    @pytest.mark.asyncio
    async def test_unsupported_and_empty_providers_contribute_nothing(self):
        """Test skipped and empty providers."""
        skipped = FakeProvider("zerox", quotes=[{"amount": "9", "exchange": "X"}], supported=False)
        empty = FakeProvider("paraswap")
        good = FakeProvider("oneinch", quotes=[{"amount": "1", "exchange": "ONE_INCH"}])
        aggregator = build([skipped, empty, good])

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")

        assert len(quotes) == 1
        assert skipped.calls == []

    @pytest.mark.asyncio
    async def test_provider_timeout(self):
        """Test a slow provider is dropped when a timeout is configured."""
        slow = FakeProvider("zerox", quotes=[{"amount": "9", "exchange": "X"}], quote_delay=1.0)
        fast = FakeProvider("oneinch", quotes=[{"amount": "1", "exchange": "ONE_INCH"}])
        settings = Settings(_env_file=None, provider_timeout_seconds=0.05)
        aggregator = build([slow, fast], settings=settings)

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")

        assert [q.provider for q in quotes] == ["oneinch"]

    @pytest.mark.asyncio
    async def test_quote_request_passed_to_providers(self):
        """Test each provider receives the same request."""
        provider = FakeProvider("oneinch")
        aggregator = build([provider])

        await aggregator.get_all_quotes(ETH, USDC, "1.5")

        name, request = provider.calls[0]
        assert name == "get_quote"
        assert request == QuoteRequest(from_token=ETH, to_token=USDC, from_amount="1.5")

    @pytest.mark.asyncio
    async def test_quote_events(self):
        """Test request and results events are emitted."""
        emitter = RecordingEmitter()
        provider = FakeProvider("oneinch", quotes=[{"amount": "3", "exchange": "ONE_INCH"}])
        aggregator = build([provider], emitter=emitter)

        await aggregator.get_all_quotes(ETH, USDC, "1")
        await drain_pending()

        assert emitter.names() == ["swap_quote_request", "swap_quotes_received"]
        received = emitter.events[1][1]
        assert received["quotesCount"] == 1
        assert received["bestQuote"] == "3"
        assert received["chain"] == "ETH"

    @pytest.mark.asyncio
    async def test_failing_emitter_does_not_affect_quotes(self):
        """Test emitter errors are swallowed."""

        class BrokenEmitter:
            async def emit(self, event_name, attributes):
                raise RuntimeError("collector down")

        provider = FakeProvider("oneinch", quotes=[{"amount": "3", "exchange": "ONE_INCH"}])
        aggregator = build([provider], emitter=BrokenEmitter())

        quotes = await aggregator.get_all_quotes(ETH, USDC, "1")
        await drain_pending()

        assert len(quotes) == 1

    @pytest.mark.asyncio
    async def test_quotes_for_set(self):
        """Test batch quoting against the cross-chain provider, in order."""
        changelly = FakeProvider("changelly", quotes=[{"amount": "7", "exchange": "CHANGELLY"}])
        other = FakeProvider("oneinch", quotes=[{"amount": "1", "exchange": "ONE_INCH"}])
        aggregator = build([other, changelly])
        requests = [
            QuoteRequest(from_token=ETH, to_token=USDC, from_amount="1"),
            QuoteRequest(from_token=USDC, to_token=ETH, from_amount="2"),
        ]

        results = await aggregator.get_quotes_for_set(requests)

        assert len(results) == 2
        assert [r[0].from_amount for r in results] == ["1", "2"]
        assert other.calls == []


class TestDispatch:
    """Tests for provider-keyed dispatch."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,args",
        [
            ("get_trade", ()),
            ("is_valid_to_address", ()),
            ("get_min_max_amount", ()),
            ("get_status", ()),
            ("execute_trade", ({"confirmed": True},)),
        ],
    )
    async def test_forwards_only_to_matching_provider(self, method, args):
        """Test the unmodified payload reaches only the tagged provider."""
        providers = four_providers()
        aggregator = build(providers)
        payload = {"provider": "paraswap", "address": "valid", "id": "order-1"}

        await getattr(aggregator, method)(payload, *args)

        assert len(providers[2].calls) == 1
        name, received = providers[2].calls[0]
        assert name == method
        if method == "execute_trade":
            assert received[0] is payload
            assert received[1] == {"confirmed": True}
        else:
            assert received is payload
        for i in (0, 1, 3):
            assert providers[i].calls == []

    @pytest.mark.asyncio
    async def test_dispatch_accepts_enum_tag(self):
        """Test a ProviderName tag resolves like its string value."""
        providers = four_providers()
        aggregator = build(providers)

        result = await aggregator.get_min_max_amount({"provider": ProviderName.CHANGELLY})

        assert result == {"min": "0.1", "max": "10"}

    @pytest.mark.asyncio
    async def test_unknown_provider_returns_none(self):
        """Test a dispatch miss yields None instead of raising."""
        aggregator = build(four_providers())

        assert await aggregator.execute_trade({"provider": "X"}, {}) is None
        assert await aggregator.get_status({"provider": "X"}) is None
        assert await aggregator.get_trade({"provider": "X"}) is None

    @pytest.mark.asyncio
    async def test_unknown_provider_strict_mode(self):
        """Test strict dispatch raises on a miss."""
        settings = Settings(_env_file=None, strict_dispatch=True)
        aggregator = build(four_providers(), settings=settings)

        with pytest.raises(UnknownProviderError):
            await aggregator.execute_trade({"provider": "X"}, {})

    @pytest.mark.asyncio
    async def test_execute_trade_events_on_success(self):
        """Test start and success events bracket execution."""
        emitter = RecordingEmitter()
        aggregator = build(four_providers(), emitter=emitter)

        result = await aggregator.execute_trade({"provider": "oneinch"}, {})
        await drain_pending()

        assert result["tx_hash"] == "0xabc"
        assert emitter.names() == ["swap_execute_start", "swap_execute_success"]
        assert emitter.events[1][1]["txHash"] == "0xabc"

    @pytest.mark.asyncio
    async def test_execute_trade_error_is_reraised(self):
        """Test the error event is emitted and the error re-raised."""
        emitter = RecordingEmitter()
        failing = FakeProvider("oneinch", execute_error=ProviderError("oneinch", "reverted"))
        aggregator = build([failing], emitter=emitter)

        with pytest.raises(ProviderError):
            await aggregator.execute_trade({"provider": "oneinch"}, {})
        await drain_pending()

        assert emitter.names() == ["swap_execute_start", "swap_execute_error"]
        assert "reverted" in emitter.events[1][1]["error"]

    @pytest.mark.asyncio
    async def test_status_events(self):
        """Test status check and result events."""
        emitter = RecordingEmitter()
        aggregator = build(four_providers(), emitter=emitter)

        status = await aggregator.get_status({"provider": "changelly", "id": "abc"})
        await drain_pending()

        assert status["status"] == "success"
        assert emitter.names() == ["swap_status_check", "swap_status_result"]
        assert emitter.events[0][1]["orderId"] == "abc"

    @pytest.mark.asyncio
    async def test_duplicate_tags_first_wins(self):
        """Test the first adapter with a tag receives dispatch."""
        first = FakeProvider("oneinch")
        second = FakeProvider("oneinch")
        aggregator = build([first, second])

        await aggregator.get_trade({"provider": "oneinch"})

        assert len(first.calls) == 1
        assert second.calls == []


class TestConcurrency:
    """Tests for independent concurrent calls."""

    @pytest.mark.asyncio
    async def test_concurrent_quote_calls_are_independent(self):
        """Test parallel calls do not share results."""
        provider = FakeProvider("oneinch", quotes=[{"amount": "1", "exchange": "ONE_INCH"}])
        aggregator = build([provider])

        first, second = await asyncio.gather(
            aggregator.get_all_quotes(ETH, USDC, "1"),
            aggregator.get_all_quotes(USDC, ETH, "2"),
        )

        assert first[0].from_amount == "1"
        assert second[0].from_amount == "2"
        assert first[0] is not second[0]


class TestLifecycle:
    """Tests for construction and shutdown."""

    @pytest.mark.asyncio
    async def test_context_manager_closes_adapters(self):
        """Test leaving the context closes every adapter."""
        providers = four_providers()
        closed = []
        for p in providers:
            async def aclose(tag=p.provider):
                closed.append(tag)
            p.aclose = aclose

        async with build(providers) as aggregator:
            assert aggregator.get_provider("zerox") is providers[1]

        assert closed == ["oneinch", "zerox", "paraswap", "changelly"]

    @pytest.mark.asyncio
    async def test_aclose_closes_emitter(self):
        """Test shutdown also closes an emitter that owns a client."""
        class ClosingEmitter(RecordingEmitter):
            closed = False

            async def aclose(self):
                self.closed = True

        emitter = ClosingEmitter()
        aggregator = build(four_providers(), emitter=emitter)

        await aggregator.aclose()

        assert emitter.closed

    @pytest.mark.asyncio
    async def test_aclose_without_emitter_close(self):
        """Test emitters without aclose are left alone."""
        aggregator = build(four_providers(), emitter=RecordingEmitter())

        await aggregator.aclose()

    def test_emitter_from_settings(self):
        """Test the emitter follows telemetry settings when none is injected."""
        enabled = Settings(_env_file=None, telemetry_enabled=True, telemetry_url="https://collector")

        assert isinstance(build(four_providers(), settings=enabled).emitter, SpanEventEmitter)
        assert isinstance(build(four_providers()).emitter, NullEmitter)

    def test_default_providers_built_for_chain(self):
        """Test the default adapter list when none is injected."""
        aggregator = SwapAggregator(FakeSender(), "pol", settings=Settings(_env_file=None))

        assert aggregator.chain == "MATIC"
        assert [p.provider for p in aggregator.providers] == [
            "oneinch", "zerox", "paraswap", "changelly",
        ]
        assert all(p.chain == "MATIC" for p in aggregator.providers)
