"""
Player clients for the LightBeat scheduler.

A player client does NOT render anything.  It reads what a remote player is
doing (track, position, playing or paused) and where the musical events of
the current track fall.  The factory ``create_player`` reads config.json and
returns the configured client.

Supported types:
  - ``spotify`` – Spotify Web API (currently-playing + audio analysis) (default)
  - ``demo``    – synthetic fixed-tempo track, no network needed
"""

from ..lib.config import cfg
from ..lib.player_base import PlayerClient
from .demo import DemoPlayer
from .spotify import SpotifyClient

__all__ = [
    "PlayerClient",
    "DemoPlayer",
    "SpotifyClient",
    "create_player",
]

PLAYERS = {
    SpotifyClient.id: SpotifyClient,
    DemoPlayer.id: DemoPlayer,
}


def create_player(player_type: str | None = None) -> PlayerClient:
    """Create the player client named by *player_type* or config player.type."""
    player_type = player_type or cfg("player", "type", default="spotify")
    try:
        return PLAYERS[player_type]()
    except KeyError:
        raise ValueError(f"Unknown player type: {player_type!r}") from None
