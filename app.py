"""
City Value Map - Main Application

Streamlit host for the 3D land-value map. The field is synthesized once per
session; every rerun forwards the sidebar controls to the render controller
as events and draws whatever the engine holds afterwards.
"""

import asyncio
import logging
import os

import plotly.express as px
import streamlit as st

from landvalue.theme import COLORS, get_page_config, inject_theme, section_header

# ═══════════════════════════════════════════════════════════════════════════
# PAGE CONFIG
# ═══════════════════════════════════════════════════════════════════════════
st.set_page_config(**get_page_config("3D Land Value"))
inject_theme()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s │ %(name)-20s │ %(levelname)-8s │ %(message)s',
    datefmt='%H:%M:%S',
)
log = logging.getLogger("app")

# ═══════════════════════════════════════════════════════════════════════════
# IMPORTS
# ═══════════════════════════════════════════════════════════════════════════
from landvalue.config import load_config
from landvalue.models import ConfigError
from loaders.presets import get_city_preset
from render import MAP_STYLES, Remedy, RenderController
from render.styles import style_url

# ═══════════════════════════════════════════════════════════════════════════
# SESSION STATE
# ═══════════════════════════════════════════════════════════════════════════
if "app_config" not in st.session_state:
    try:
        st.session_state.app_config = load_config(os.getenv("CITY_VALUE_CONFIG"))
        st.session_state.preset = get_city_preset(os.getenv("CITY_PRESET", "hangzhou"))
    except ConfigError as e:
        st.error(f"❌ Configuration error: {e}")
        st.stop()

config = st.session_state.app_config
preset = st.session_state.preset

if "collection" not in st.session_state:
    st.session_state.collection = preset.synthesize(config.synthesis)

collection = st.session_state.collection

if "controller" not in st.session_state:
    st.session_state.controller = RenderController(collection, config.render)
    st.session_state.fly_target = None

controller: RenderController = st.session_state.controller


def reset_controller():
    """Throw the engine away so the next run mounts a fresh one."""
    log.info("Retrying map engine initialization")
    controller.dispose()
    del st.session_state["controller"]


# ═══════════════════════════════════════════════════════════════════════════
# SIDEBAR
# ═══════════════════════════════════════════════════════════════════════════
st.sidebar.title(f"🏙️ {preset.name} 3D")
st.sidebar.caption("Urban Land Value Visualization")
st.sidebar.markdown("---")

style_urls = [style_url(option.id) for option in MAP_STYLES]
style_names = {style_url(option.id): f"{option.icon} {option.name}" for option in MAP_STYLES}
current_style = controller.status.current_style
selected_style = st.sidebar.radio(
    "Map Style",
    options=style_urls,
    format_func=lambda url: style_names[url],
    index=style_urls.index(current_style) if current_style in style_urls else 0,
)

analysis_mode = st.sidebar.toggle(
    "📊 Value Analysis",
    value=controller.status.analysis_mode,
    help="Heatmap, price labels, facility markers and influence zones",
)

st.sidebar.markdown("---")
st.sidebar.subheader("📍 Landmarks")
for landmark in preset.landmarks:
    if st.sidebar.button(landmark.name, key=f"fly_{landmark.id}", help=landmark.description):
        st.session_state.fly_target = landmark

# ═══════════════════════════════════════════════════════════════════════════
# DRIVE THE CONTROLLER
# ═══════════════════════════════════════════════════════════════════════════
map_slot = st.empty()


async def drive():
    await controller.mount(map_slot)
    await controller.settle()
    controller.set_style(selected_style)
    controller.set_analysis_mode(analysis_mode)
    target = st.session_state.pop("fly_target", None)
    if target is not None:
        controller.fly_to(target)
    await controller.settle()


asyncio.run(drive())
status = controller.status

# ═══════════════════════════════════════════════════════════════════════════
# MAP
# ═══════════════════════════════════════════════════════════════════════════
if status.error is not None:
    with map_slot.container():
        st.error(f"⚠️ {status.error.message}")
        st.caption(status.error.hint)
        if status.error.remedy == Remedy.REOPEN:
            st.link_button(status.error.action_label, config.render.reopen_url)
        elif st.button(status.error.action_label):
            reset_controller()
            st.rerun()
elif status.is_loading or not status.loaded:
    map_slot.info("⏳ Loading 3D Engine...")
else:
    deck = controller.render()
    if deck is not None:
        map_slot.pydeck_chart(deck, height=640)

camera = controller.view_state
st.sidebar.markdown("---")
st.sidebar.markdown(
    f'<div class="camera-readout">Lat: {camera.lat:.4f} | Lng: {camera.lng:.4f}<br>'
    f'Zoom: {camera.zoom:.1f} | Pitch: {camera.pitch:.0f}° | Bearing: {camera.bearing:.0f}°</div>',
    unsafe_allow_html=True,
)

# ═══════════════════════════════════════════════════════════════════════════
# LEGEND & DISTRIBUTION
# ═══════════════════════════════════════════════════════════════════════════
if status.analysis_mode:
    st.sidebar.markdown("---")
    st.sidebar.subheader("Public Facilities")
    for facility in collection.facilities:
        st.sidebar.markdown(
            f'<span style="color:{facility.color}">●</span> {facility.icon} {facility.name}',
            unsafe_allow_html=True,
        )
    st.sidebar.caption("Colored rings show each facility's premium radius.")

    section_header("📊 Price Distribution", "Synthesized ¥/m² across all kept samples")
    summary = collection.summary()
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Samples", summary["count"])
    col2.metric("Discarded", summary["discarded"])
    col3.metric("Mean", f"¥{summary['mean']:,.0f}")
    col4.metric("Max", f"¥{summary['max']:,.0f}")

    df = collection.to_dataframe()
    fig_hist = px.histogram(df, x="price", nbins=30, color_discrete_sequence=[COLORS['warning']])
    fig_hist.update_layout(height=300, margin=dict(l=20, r=20, t=20, b=20))
    st.plotly_chart(fig_hist, width="stretch")
