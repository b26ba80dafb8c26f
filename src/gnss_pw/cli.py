import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

from gnss_pw.config import load_settings, setup_logging
from gnss_pw.data.pipeline import run_batch_pipeline
from gnss_pw.errors import PwError
from gnss_pw.service import build_service


def _prediction(prediction) -> dict:
    return {
        "predicted_pw_mm": round(prediction.predicted_pw_mm, 4),
        "uncertainty_mm": round(prediction.uncertainty_mm, 4),
        "method": prediction.method,
        "note": prediction.note,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Estimate precipitable water from GNSS observations.")
    sub = parser.add_subparsers(dest="command", required=True)

    rinex = sub.add_parser("rinex", help="Estimate PW from a RINEX observation file.")
    rinex.add_argument("path", help="Path to a .Z, .gz or plain observation file.")
    rinex.add_argument("--no-meteo", action="store_true", help="Skip the weather lookup.")

    coords = sub.add_parser("coords", help="Interpolate PW at a coordinate.")
    coords.add_argument("latitude", type=float)
    coords.add_argument("longitude", type=float)

    analyze = sub.add_parser("analyze", help="Compare a PW estimate with the interpolated surface.")
    analyze.add_argument("latitude", type=float)
    analyze.add_argument("longitude", type=float)
    analyze.add_argument("estimated_pw", type=float)

    batch = sub.add_parser("batch", help="Export features and predictions for a directory of files.")
    batch.add_argument("input_dir", help="Directory with observation files.")
    batch.add_argument("--base-dir", default="data", help="Output base data directory")
    batch.add_argument("--no-meteo", action="store_true", help="Skip the weather lookup.")

    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(settings.log_dir)
    service = build_service(settings)

    try:
        if args.command == "rinex":
            path = Path(args.path)
            with path.open("rb") as fh:
                estimate = service.estimate_from_upload(fh, path.name, include_weather=not args.no_meteo)
            payload = {
                "record": asdict(estimate.record),
                "total_observations": estimate.extraction.total_observations,
                "prediction": _prediction(estimate.prediction),
                "processed_at": estimate.processed_at,
                "notes": estimate.notes,
            }
        elif args.command == "coords":
            payload = {
                "coordinates": {"latitude": args.latitude, "longitude": args.longitude},
                "prediction": _prediction(service.estimate_from_coordinates(args.latitude, args.longitude)),
                "processed_at": service.processed_at(),
            }
        elif args.command == "analyze":
            payload = asdict(service.analyze_error(args.latitude, args.longitude, args.estimated_pw))
        else:
            outputs = run_batch_pipeline(
                input_dir=Path(args.input_dir),
                base_dir=Path(args.base_dir),
                service=service,
                include_weather=not args.no_meteo,
            )
            payload = {name: str(path) for name, path in outputs.items()}
    except PwError as exc:
        print(json.dumps({"error": type(exc).__name__, "message": str(exc)}))
        return 2
    finally:
        service.close()

    print(json.dumps(payload))
    return 0


if __name__ == "__main__":
    sys.exit(main())
