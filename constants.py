# Mahjong Tile Representation
# Tiles travel as short kind codes: rank + suit letter for numbered tiles,
# pinyin names for honors.
# Wan (Characters)
WAN = ["1w", "2w", "3w", "4w", "5w", "6w", "7w", "8w", "9w"]
# Tong (Dots)
TONG = ["1b", "2b", "3b", "4b", "5b", "6b", "7b", "8b", "9b"]
# Tiao (Bamboos)
TIAO = ["1t", "2t", "3t", "4t", "5t", "6t", "7t", "8t", "9t"]
# Zipai (Winds and Dragons)
HONORS = ["dong", "nan", "xi", "bei", "zhong", "fa", "bai"] # East, South, West, North, Red, Green, White

NUMBERED_SUITS = ["w", "b", "t"] # display precedence: wan, tong, tiao
COPIES_PER_KIND = 4
ALL_KINDS = WAN + TONG + TIAO + HONORS # 34 kinds
ALL_TILES = [kind for kind in ALL_KINDS for _ in range(COPIES_PER_KIND)] # total 136

SEATS = 4
INITIAL_HAND_SIZE = 13
FULL_HAND_SIZE = 14
GROUPS_PER_HAND = 4

# Canonical ordering: suit class first, then rank within suit
SUIT_ORDER = {suit: i for i, suit in enumerate(NUMBERED_SUITS)}
HONOR_ORDER = {name: i for i, name in enumerate(HONORS)}
HONOR_SUIT_RANK = len(SUIT_ORDER)

# Claim kinds
WIN = "win"
QUAD = "quad"
TRIPLET = "triplet"
SEQUENCE = "sequence"

CLAIM_PRIORITY = {
    WIN: 4,
    QUAD: 3,
    TRIPLET: 2,
    SEQUENCE: 1,
}

# Meld kinds
MELD_SEQUENCE = "sequence"
MELD_TRIPLET = "triplet"
MELD_QUAD = "quad"
MELD_CONCEALED_QUAD = "concealed_quad"

# Table phases
SEATING = "seating"
DEALING = "dealing"
AWAITING_DISCARD = "awaiting_discard"
AWAITING_CLAIMS = "awaiting_claims"
ROUND_COMPLETE = "round_complete"

# Fan categories: (points added, display name)
FAN_SELF_DRAWN = "self_drawn"
FAN_ALL_TRIPLETS = "all_triplets"
FAN_ALL_ONE_SUIT = "all_one_suit"
FAN_MIXED_ONE_SUIT = "mixed_one_suit"
FAN_BASELINE = "baseline"

FAN_TABLE = {
    FAN_SELF_DRAWN: (1, "自摸"),
    FAN_ALL_TRIPLETS: (2, "碰碰胡"),
    FAN_ALL_ONE_SUIT: (5, "清一色"),
    FAN_MIXED_ONE_SUIT: (3, "混一色"),
    FAN_BASELINE: (0, "平胡"),
}
BASE_MULTIPLIER = 1

DEFAULT_CLAIM_TIMEOUT = 10 # seconds

TABLE_ID_LENGTH = 6
