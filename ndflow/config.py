from donfig import Config

config = Config(
    "ndflow",
    defaults=[
        {
            "range": {"boundary": "forbid", "max_implicit_dims": 5, "fill_value": 0},
            "dataflow": {"forward": True, "backward": True},
        }
    ],
)
