"""
Interactive prompts: choosing an anime from search results and typing an
episode selection.
"""

import logging
from typing import Any, Dict, List, Optional

import questionary
import typer

log = logging.getLogger(__name__)


def describe_search_result(anime: Dict[str, Any]) -> str:
    """One-line label for a search result, e.g. 'Frieren (TV) · Sub/Dub 28/28'."""
    name = anime.get("name") or anime.get("id") or "N/A"
    kind = anime.get("type") or "N/A"
    episodes = anime.get("episodes") or {}
    label = f"{name} ({kind})"
    if isinstance(episodes, dict) and (episodes.get("sub") or episodes.get("dub")):
        label += f" · Sub/Dub {episodes.get('sub') or 0}/{episodes.get('dub') or 0}"
    return label


async def choose_anime(
    results: List[Dict[str, Any]], search_term: str
) -> Optional[Dict[str, Any]]:
    """
    Lets the user pick one search result. A single result is chosen without
    asking; a cancelled prompt returns None.
    """
    if not results:
        return None
    if len(results) == 1:
        log.debug("Single search result; selecting it automatically.")
        return results[0]

    choices = [
        questionary.Choice(describe_search_result(anime), value=anime)
        for anime in results
    ]
    return await questionary.select(
        f"Select anime (results for '{search_term}'):",
        choices=choices,
        use_shortcuts=len(choices) <= 36,
    ).ask_async()


def ask_episode_selection() -> str:
    """Asks for an episode selection expression."""
    return typer.prompt(
        "▶ Enter episode selection (e.g., 1, 3-5, *, L2, !4)",
        default="",
        show_default=False,
    ).strip()
