"""
Shared theme and styling for the host page.

Provides the dark map-console CSS, the color palette, and color helpers
used by both the page and the deck.gl adapter.
"""

from typing import List

# Color palette - night console
COLORS = {
    'primary': '#3b82f6',      # Blue
    'accent': '#10b981',       # Emerald
    'warning': '#f59e0b',      # Amber
    'danger': '#f87171',       # Red
    'background': '#030712',   # Near black
    'surface': 'rgba(0, 0, 0, 0.8)',
    'text': '#ffffff',
    'muted': '#9ca3af',
}

SHARED_CSS = """
<style>
    /* Hide Streamlit chrome */
    #MainMenu, header, footer, .stDeployButton {
        visibility: hidden;
        display: none;
    }

    /* Full-bleed map */
    .block-container {
        padding: 0.5rem 1rem;
        max-width: 100%;
    }

    /* Sidebar as floating control panel */
    [data-testid="stSidebar"] {
        background: rgba(0, 0, 0, 0.8);
        border-right: 1px solid rgba(255, 255, 255, 0.1);
    }

    /* Camera readout */
    .camera-readout {
        font-family: monospace;
        font-size: 0.75rem;
        color: #6b7280;
        background: rgba(0, 0, 0, 0.5);
        padding: 0.5rem;
        border-radius: 8px;
    }

    [data-testid="stMetricValue"] {
        font-weight: 600;
    }
</style>
"""


def hex_to_rgb(color: str) -> List[int]:
    """'#3b82f6' -> [59, 130, 246]. Accepts the 3-digit short form too."""
    value = color.lstrip('#')
    if len(value) == 3:
        value = ''.join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Not a hex color: {color!r}")
    return [int(value[i:i + 2], 16) for i in (0, 2, 4)]


def hex_to_rgba(color: str, opacity: float = 1.0) -> List[int]:
    """Hex color plus alpha channel scaled from a 0..1 opacity."""
    return hex_to_rgb(color) + [int(round(max(0.0, min(opacity, 1.0)) * 255))]


def get_page_config(title: str):
    """Get consistent page configuration."""
    return {
        'page_title': f"{title} | City Value Map",
        'page_icon': "🗺️",
        'layout': "wide",
        'initial_sidebar_state': "expanded",
    }


def inject_theme():
    """Inject shared CSS into the page."""
    import streamlit as st
    st.markdown(SHARED_CSS, unsafe_allow_html=True)


def section_header(title: str, description: str = None):
    """Render a consistent section header."""
    import streamlit as st
    st.subheader(title)
    if description:
        st.caption(description)
