"""caroushell: a shell prompt with suggestion carousels above and below it."""

__version__ = "0.1.0"

# Key decoding
from caroushell.keys import Key, KeyEvent, match_sequence
from caroushell.keyboard import Keyboard

# Rendering
from caroushell.terminal import Colors, Terminal
from caroushell.utils import get_display_width, strip_ansi, truncate_to_width

# Input model
from caroushell.carousel import Carousel, LineInfo, WordInfo, get_line_info

# Suggestion sources
from caroushell.suggester import DebouncedSuggester, Suggester
from caroushell.history_suggester import HistorySuggester
from caroushell.file_suggester import FileSuggester
from caroushell.ai_suggester import AISuggester

# Configuration
from caroushell.config import Config, ConfigError, get_config

# Command execution
from caroushell.spawner import ExitRequested, run_user_command

# Application
from caroushell.app import App, collapse_line_continuations

__all__ = [
    "__version__",
    # Keys
    "Key",
    "KeyEvent",
    "Keyboard",
    "match_sequence",
    # Rendering
    "Colors",
    "Terminal",
    "get_display_width",
    "strip_ansi",
    "truncate_to_width",
    # Input model
    "Carousel",
    "LineInfo",
    "WordInfo",
    "get_line_info",
    # Suggesters
    "AISuggester",
    "DebouncedSuggester",
    "FileSuggester",
    "HistorySuggester",
    "Suggester",
    # Config
    "Config",
    "ConfigError",
    "get_config",
    # Commands
    "ExitRequested",
    "run_user_command",
    # App
    "App",
    "collapse_line_continuations",
]
