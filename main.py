from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

from divelog.app.viewmodels.dive_vm import DiveVM
from divelog.app.viewmodels.main_vm import MainVM
from divelog.app.viewmodels.trip_vm import TripVM
from divelog.core.models import Trip
from divelog.infrastructure.csv_repository import CsvDiveRepository
from divelog.infrastructure.logging import init_logging
from divelog.infrastructure.settings import DiveListConfig, JsonSettings

BASE_DIR = Path(__file__).parent


def _print_list(vm: MainVM) -> None:
    # Newest first, like the dive list view
    for item in reversed(vm.top_level_items()):
        if isinstance(item, Trip):
            tvm = TripVM(item)
            print(f"{tvm.title} ({tvm.shown_dives} dives)")
            dives = reversed(list(item.dives))
            indent = "  "
        else:
            dives = [item]
            indent = ""
        for dive in dives:
            dvm = DiveVM(dive)
            print(
                f"{indent}#{dvm.number:<4} {dvm.date_text}  {dvm.duration_text:>10}  "
                f"{dvm.depth_text:>7}  {dvm.gas_string:>8}  CNS {dive.maxcns}%"
            )


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    settings = JsonSettings(BASE_DIR / "settings.json")
    config = DiveListConfig.from_settings(settings)
    init_logging(config.log_dir, config.log_level)

    if not args:
        print("usage: main.py LOG.csv [IMPORT.csv ...]", file=sys.stderr)
        return 2

    vm = MainVM(CsvDiveRepository(), config)
    vm.load_csv(args[0])
    for path in args[1:]:
        vm.import_csv(path)
    vm.refresh_cylinder_info()
    logger.info("Dive list ready: {} dives in {} trips", vm.dive_count, vm.trip_count)

    _print_list(vm)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
