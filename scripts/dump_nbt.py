import argparse
from pathlib import Path

from export_converter import nbt


def main():
    ap = argparse.ArgumentParser(description="Print the tag tree of an uncompressed .nbt file")
    ap.add_argument("--input", type=Path, required=True)
    args = ap.parse_args()

    root = nbt.load(args.input)
    print(root.format_tree())


if __name__ == "__main__":
    main()
