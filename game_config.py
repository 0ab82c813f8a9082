# Default roster, seeded the first time the app starts against an empty store.
# respawn_hours may be fractional.
BOSS_SETTINGS = {
    "QUIMERA":      {"level": 38, "location": "MAP 6",  "respawn_hours": 2,   "img": "/attached_assets/quimera.png"},
    "THRANDIR":     {"level": 43, "location": "MAP 12", "respawn_hours": 2,   "img": "/attached_assets/thrandir.png"},
    "GIGANTUS":     {"level": 48, "location": "MAP 2",  "respawn_hours": 3,   "img": "/attached_assets/gigantus.png"},
    "FLONEBLE":     {"level": 53, "location": "MAP 5",  "respawn_hours": 3,   "img": "/attached_assets/floneble.png"},
    "DEATH RAVEN":  {"level": 63, "location": "MAP 3",  "respawn_hours": 4,   "img": "/attached_assets/death_raven.png"},
    "GYES":         {"level": 68, "location": "MAP 10", "respawn_hours": 4,   "img": "/attached_assets/gyes.png"},
    "LINDWURM":     {"level": 73, "location": "MAP 8",  "respawn_hours": 4,   "img": "/attached_assets/lindwurm.png"},
    "BRIARE":       {"level": 78, "location": "MAP 17", "respawn_hours": 3,   "img": "/attached_assets/briare.png"},
    "LEO":          {"level": 83, "location": "MAP 19", "respawn_hours": 3,   "img": "/attached_assets/leo.png"},
    "RUGINOAMAN":   {"level": 88, "location": "MAP 14", "respawn_hours": 2.5, "img": "/attached_assets/ruginoaman.jpg"},
    "LYTHEA":       {"level": 93, "location": "MAP 18", "respawn_hours": 2,   "img": "/attached_assets/lythea.png"},
    "OSTIAR":       {"level": 98, "location": "MAP 22", "respawn_hours": 1,   "img": "/attached_assets/ostiar.png"},
}

DEFAULT_BOSS_NAMES = list(BOSS_SETTINGS.keys())

DEFAULT_ICON_TYPE = "dragon"
DEFAULT_ICON_COLOR = "red"

# Member enums
CHARACTER_CLASSES = ("ARCHER", "WARRIOR", "MAGE")
ROLE_MEMBER = "Member"
ROLE_VICE_LEADER = "Vice-Leader"
ROLE_LEADER = "Leader"
LEADER_ROLES = (ROLE_LEADER, ROLE_VICE_LEADER)

# Timer bands (minutes)
UPCOMING_WINDOW_MINUTES = 60
SPAWNING_SOON_MINUTES = 10

# Activity type tags
BOSS_ADDED = "boss_added"
BOSS_KILLED = "boss_killed"
BOSS_SPAWNED = "boss_spawned"
BOSS_UPDATED = "boss_updated"
BOSS_DELETED = "boss_deleted"
MEMBER_JOINED = "member_joined"
MEMBER_LEFT = "member_left"
DKP_CHANGE = "dkp_change"


def default_bosses():
    for name in DEFAULT_BOSS_NAMES:
        settings = BOSS_SETTINGS[name]
        yield {
            "name": name,
            "level": settings["level"],
            "location": settings["location"],
            "respawn_time_hours": settings["respawn_hours"],
            "image_url": settings["img"],
        }
