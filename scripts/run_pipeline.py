from __future__ import annotations

import subprocess

SAMPLE = (
    "Governor James M. Cox of Ohio made a whirlwind campaign, while Senator Warren G. "
    "Harding relied upon a front porch campaign in Marion, Ohio."
)


def main():
    subprocess.run(["python", "-m", "yaaai.entrypoints.cli", "enrich", SAMPLE], check=True)


if __name__ == "__main__":
    main()
