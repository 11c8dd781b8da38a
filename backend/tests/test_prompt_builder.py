from __future__ import annotations

from ridewise.listings.types import ListingDetail, SearchIntent, SearchResult
from ridewise.services.history import ConversationTurn
from ridewise.services.prompt_builder import PromptBuilder
from conftest import make_summaries


def test_recommendation_prompt_lists_search_context() -> None:
    summaries = make_summaries(4)
    result = SearchResult(
        intent=SearchIntent(make="Toyota", price_min=500_000, price_max=800_000),
        summaries=tuple(summaries),
        details=tuple(ListingDetail.degraded(item) for item in summaries[:3]),
    )
    builder = PromptBuilder(language="Sinhala")

    messages = builder.build_recommendation("cheap toyota", result)

    assert len(messages) == 2
    system_prompt = messages[0]["content"]
    user_prompt = messages[1]["content"]
    assert "Sinhala" in system_prompt
    assert 'User Request: "cheap toyota"' in user_prompt
    assert "- Price Range: LKR 500,000 - LKR 800,000" in user_prompt
    assert "Search Results: 4 vehicles found" in user_prompt
    assert "VEHICLE 3:" in user_prompt
    assert "No detailed description available" in user_prompt
    assert "Newest for the money: Toyota Aqua 2010" in user_prompt


def test_fallback_results_are_flagged() -> None:
    result = SearchResult(intent=SearchIntent(), summaries=(), used_fallback=True)

    user_prompt = PromptBuilder().build_recommendation("anything", result)[1]["content"]

    assert "sample data" in user_prompt
    assert "- Make: Any" in user_prompt
    assert "- Price Range: Min - Max" in user_prompt


def test_quick_reply_prompt_keeps_recent_history_only() -> None:
    history = [ConversationTurn(role="user", message=f"question {index}") for index in range(5)]

    user_prompt = PromptBuilder(max_history=2).build_quick_reply("hello", history)[1]["content"]

    assert 'User Message: "hello"' in user_prompt
    assert "User: question 3" in user_prompt
    assert "User: question 4" in user_prompt
    assert "question 2" not in user_prompt
