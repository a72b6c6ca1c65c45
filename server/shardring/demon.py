"""
Demon movement and damage for Shard Ring.

The demon has no choices to make: once per round it steps one room
clockwise, hurts everyone standing there, and every player's action
points refill.
"""

from server.shardring.state import START_AP


def run_demon(state):
    """Advance the demon one room and resolve the round. Returns log lines."""
    demon = state["demon"]
    demon["room"] = (demon["room"] + 1) % state["rooms"]
    state["round"] += 1
    log = [f"The demon moves to room {demon['room'] + 1}"]

    for player in state["players"]:
        if not player["alive"] or player["room"] != demon["room"]:
            continue
        player["hp"] -= 1
        log.append(f"{player['name']} is wounded! HP left: {player['hp']}")
        if player["hp"] <= 0:
            player["alive"] = False
            log.append(f"{player['name']} has fallen...")

    # Dead players are reset too; their AP is never read
    for player in state["players"]:
        player["ap"] = START_AP
    log.append(f"Round {state['round']} begins, action points restored")

    return log
