"""Starter savekeep.toml template written by ``savekeep init``."""

DEFAULT_TOML = """\
# savekeep configuration
version = "1.0"

[backup]
path = "~/savekeep-backup"
retention_full = 5            # snapshots kept per game; locked snapshots are never pruned
# retention_max_age_days = 90
only_changed = true           # no new snapshot when nothing changed
auto_prune = true

[restore]
# path = ""                   # defaults to backup.path

[scan]
workers = 4

[output]
format = "standard"           # standard | json
show_summary = true

[ignore]
# files = ["*.log", "*/cache/*"]
# registry = ["HKEY_CURRENT_USER/Software/Example/Telemetry"]

[games_filter]
# enable = ["Example Game"]   # empty = all enabled
# disable = []

[cloud]
# remote = "/mnt/nas/savekeep"
direction = "upload"          # upload | download

[logging]
level = "WARNING"
# file = "~/.local/state/savekeep/savekeep.log"

# [[games]]
# name = "Example Game"
# files = ["~/.local/share/example-game/saves/**"]
# registry = ["HKEY_CURRENT_USER/Software/Example/Game"]

# [[redirects]]
# kind = "bidirectional"      # backup | restore | bidirectional
# source = "/home/old-user"
# target = "/home/new-user"
"""
