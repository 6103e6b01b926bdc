# -*- coding: utf-8 -*-
"""
Rich console dashboard
Renders the four view projections (profile, world, arena, market) with 'rich'.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console, Group
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from views.market import CATEGORIES

if TYPE_CHECKING:
    from net.client import GameClient
    from views import ArenaView, ConsumerAdapter, MarketView, ProfileView, WorldView

STATE_STYLES = {
    "idle": "dim",
    "connecting": "yellow",
    "open": "bold green",
    "waiting": "red",
    "shut_down": "dim red",
}


def render_status(client: GameClient) -> Panel:
    state = client.state.value
    text = Text.assemble(
        ("Africa Universe", "bold green"),
        "  ",
        (client.channel.url, "cyan"),
        "  ",
        (state.upper(), STATE_STYLES.get(state, "")),
        f"  epoch #{max(client.channel.epoch_count - 1, 0)}",
    )
    return Panel(text, box=box.ROUNDED)


def render_profile(view: ProfileView) -> Panel:
    profile = view.profile
    table = Table(box=box.SIMPLE, show_header=False, expand=True)
    table.add_column("key", style="bold")
    table.add_column("value")
    table.add_row("Username", str(profile.get("username", "")))
    table.add_row("PvP Level", str(profile.get("pvpLevel", "")))
    table.add_row("Daily Reward", f"{profile.get('dailyReward', 0)} tokens")

    properties = view.owned_properties
    if properties:
        props = Table(box=box.MINIMAL, expand=True)
        props.add_column("Property")
        props.add_column("Reward / day", justify="right")
        for prop in properties:
            props.add_row(str(prop.get("name", "")), str(prop.get("reward", 0)))
        body: Any = Group(table, props)
    else:
        body = Group(table, Text("You don't own any properties yet.", style="dim"))
    return Panel(body, title="Profile", box=box.ROUNDED)


def render_world(view: WorldView) -> Panel:
    if not view.buildings:
        return Panel(Text("No buildings yet.", style="dim"), title="World", box=box.ROUNDED)
    table = Table(box=box.SIMPLE, expand=True)
    table.add_column("ID")
    table.add_column("Position")
    table.add_column("Color")
    for b in view.buildings:
        x, y, z = b["position"]
        table.add_row(str(b["id"]), f"({x:.1f}, {y:.1f}, {z:.1f})", str(b["color"]))
    return Panel(table, title=f"World ({len(view.buildings)} buildings)", box=box.ROUNDED)


def render_arena(view: ArenaView) -> Panel:
    parts: list[Any] = []
    if view.status:
        parts.append(Text(view.status, style="green"))
    if view.incoming_challenge:
        c = view.incoming_challenge
        kind = "stake fight" if c.get("stake") else "friendly fight"
        parts.append(Text(f"Challenge from {c.get('challenger_name')} ({kind})", style="bold yellow"))
    if view.players:
        table = Table(box=box.SIMPLE, expand=True)
        table.add_column("Player")
        table.add_column("PvP Level", justify="right")
        for p in view.players:
            table.add_row(str(p["username"]), str(p["pvpLevel"]))
        parts.append(table)
    else:
        parts.append(Text("No players online at the moment.", style="dim"))
    return Panel(Group(*parts), title="PvP Arena", box=box.ROUNDED)


def render_market(view: MarketView) -> Panel:
    tabs = Text()
    for cat in CATEGORIES:
        style = "bold white on green" if cat == view.active_category else "dim"
        tabs.append(f" {cat} ", style=style)
        tabs.append(" ")
    parts: list[Any] = [tabs]
    if view.last_ack:
        parts.append(Text(f"Purchase confirmed: {view.last_ack}", style="green"))
    return Panel(Group(*parts), title="Marketplace", box=box.ROUNDED)


class ConsoleDashboard:
    """
    Console dashboard
    Subscribes to view changes and redraws the layout.
    """

    def __init__(self, client: GameClient, console: Console | None = None):
        self.client = client
        self.console = console or Console(highlight=False)
        self.layout = Layout()
        self._changed = True
        self._rendered_state = None
        self._init_layout()

    def _init_layout(self) -> None:
        self.layout.split(
            Layout(name="header", size=3),
            Layout(name="main", ratio=1),
        )
        self.layout["main"].split_row(
            Layout(name="left", ratio=1),
            Layout(name="right", ratio=1),
        )
        self.layout["left"].split(
            Layout(name="profile"),
            Layout(name="market", size=6),
        )
        self.layout["right"].split(
            Layout(name="arena"),
            Layout(name="world"),
        )

    def attach(self) -> None:
        for view in self.client.views:
            view.add_listener(self._on_change)
        self.client.channel.add_readiness_listener(self._on_ready)

    def detach(self) -> None:
        for view in self.client.views:
            view.remove_listener(self._on_change)
        self.client.channel.remove_readiness_listener(self._on_ready)

    @property
    def dirty(self) -> bool:
        """Whether a projection or the channel state changed since the last render"""
        return self._changed or self.client.state is not self._rendered_state

    def _on_change(self, view: ConsumerAdapter, projection: str) -> None:
        self._changed = True

    def _on_ready(self, ready: bool) -> None:
        self._changed = True

    def render(self) -> Layout:
        self.layout["header"].update(render_status(self.client))
        self.layout["profile"].update(render_profile(self.client.profile))
        self.layout["market"].update(render_market(self.client.market))
        self.layout["arena"].update(render_arena(self.client.arena))
        self.layout["world"].update(render_world(self.client.world))
        self._changed = False
        self._rendered_state = self.client.state
        return self.layout
