from __future__ import annotations

from typing import Iterable, List

from ridewise.listings.types import ListingDetail, SearchIntent, SearchResult
from ridewise.services.history import ConversationTurn
from ridewise.services.market_summary import MarketSummary, summarize


class PromptBuilder:
    """Compose prompts for the narration backend."""

    def __init__(self, language: str = "Sinhala", max_history: int = 3) -> None:
        self._language = language
        self._max_history = max_history

    @property
    def max_history(self) -> int:
        return self._max_history

    def build_recommendation(
        self,
        message: str,
        result: SearchResult,
        history: Iterable[ConversationTurn] = (),
    ) -> List[dict]:
        """Create the message list for a recommendation over search results."""

        system_prompt = (
            "You are a friendly Sri Lankan vehicle buying assistant. "
            f"Always answer in {self._language}, formatted as Markdown with headers, "
            "bullet points, **bold** highlights, listing links and listing images."
        )
        lines = [
            f'User Request: "{message}"',
            "",
            "Search Parameters:",
            *self._intent_lines(result.intent),
            "",
            f"Search Results: {len(result.summaries)} vehicles found"
            + (" (sample data, live search unavailable)" if result.used_fallback else ""),
            *self._market_lines(summarize(result.summaries)),
            "",
            "Detailed Vehicle Information:",
        ]
        for index, detail in enumerate(result.details, start=1):
            lines.extend(self._vehicle_lines(index, detail))
        history_lines = self._history_lines(history)
        if history_lines:
            lines.extend(["", "Chat History Context:", *history_lines])
        lines.extend(
            [
                "",
                "Write a recommendation with: an introduction acknowledging the request, "
                "a short search summary, the best 2-3 options with specific reasons, "
                "a comparison of price, features and value, practical advice for buying "
                "in Sri Lanka (inspection, financing, negotiation) and concrete next steps.",
            ]
        )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": "\n".join(lines)},
        ]

    def build_quick_reply(
        self, message: str, history: Iterable[ConversationTurn] = ()
    ) -> List[dict]:
        """Create the message list for a short conversational reply."""

        system_prompt = (
            "You help people find vehicles in Sri Lanka. "
            f"Reply in friendly, conversational {self._language} using Markdown."
        )
        lines = [f'User Message: "{message}"']
        history_lines = [f"User: {turn.message}" for turn in self._tail(history)]
        if history_lines:
            lines.extend(["", "Recent Chat History:", *history_lines])
        lines.extend(
            [
                "",
                "If this looks like a vehicle search, ask for the make, model, budget "
                "and location. Otherwise give general vehicle advice.",
            ]
        )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": "\n".join(lines)},
        ]

    @staticmethod
    def _intent_lines(intent: SearchIntent) -> List[str]:
        low = f"LKR {intent.price_min:,}" if intent.price_min is not None else "Min"
        high = f"LKR {intent.price_max:,}" if intent.price_max is not None else "Max"
        return [
            f"- Make: {intent.make or 'Any'}",
            f"- Model: {intent.model or 'Any'}",
            f"- Type: {intent.vehicle_type}",
            f"- Price Range: {low} - {high}",
        ]

    @staticmethod
    def _market_lines(summary: MarketSummary) -> List[str]:
        lines: List[str] = []
        if summary.price_range:
            lines.append(
                f"Price spread: LKR {summary.price_range.minimum:,} - "
                f"LKR {summary.price_range.maximum:,} "
                f"(average LKR {summary.price_range.average:,})"
            )
        if summary.best_value:
            lines.append(f"Newest for the money: {summary.best_value.title}")
        return lines

    @staticmethod
    def _vehicle_lines(index: int, detail: ListingDetail) -> List[str]:
        vehicle = detail.summary
        lines = [
            f"VEHICLE {index}:",
            f"- Title: {vehicle.title}",
            f"- Price: {vehicle.raw_price_text}",
            f"- Location: {vehicle.location}",
            f"- Year: {vehicle.year or 'N/A'}",
            f"- Mileage: {vehicle.mileage_text}",
            f"- Features: {', '.join(vehicle.features) or 'Standard'}",
            f"- Description: {detail.description or 'No detailed description available'}",
            f"- Image: {vehicle.image or 'Not available'}",
            f"- Link: {vehicle.link}",
        ]
        if vehicle.is_promoted:
            lines.append("- PROMOTED LISTING")
        return lines

    def _history_lines(self, history: Iterable[ConversationTurn]) -> List[str]:
        lines = []
        for turn in self._tail(history):
            response = (turn.response or "")[:100]
            lines.append(f"User: {turn.message} | AI: {response}...")
        return lines

    def _tail(self, history: Iterable[ConversationTurn]) -> List[ConversationTurn]:
        turns = list(history)
        return turns[-self._max_history :] if self._max_history > 0 else []
