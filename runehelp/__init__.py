"""Old School RuneScape hiscores tracker: snapshots, change detection and deltas."""
