import asyncio
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from core.config import get_settings
from orchestrator import ExtractionOrchestrator
from utils.asset_schemas import AssetExtractionOptions

load_dotenv(override=True)

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def extract_structure(pptx_path: str, output_dir: str = "output"):
    orchestrator = ExtractionOrchestrator(auto_initialize=False)
    document = await orchestrator.execute("structure", source=pptx_path)

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    json_path = output_path / f"{Path(pptx_path).stem}.json"
    json_path.write_text(json.dumps(document.to_json(), indent=2, ensure_ascii=False), encoding="utf-8")

    print(f"✅ Extracted {document.metadata.slide_count} slides, {document.metadata.shape_count} shapes")
    for slide in document.slides:
        print(f"  📄 Slide {slide.slide_index}: {len(slide.shapes)} shapes, {len(slide.warnings)} warnings")
    print(f"💾 Saved: {json_path}")
    return json_path


async def extract_assets(pptx_path: str):
    orchestrator = ExtractionOrchestrator()
    problems = orchestrator.validate_configuration()
    for problem in problems:
        print(f"⚠️  {problem}")

    options = AssetExtractionOptions(
        asset_types=["image", "video"],
        return_format="metadata-only",
        save_to_storage=not problems,
    )
    result = await orchestrator.execute("assets", source=pptx_path, options=options)

    print(f"📦 {result.status.value}: {result.total_assets} assets {result.assets_by_type()}")
    for asset in result.assets:
        print(f"  🖼️  {asset.filename} ({asset.size} bytes) -> {asset.storage_url or 'not stored'}")
    for warning in result.warnings:
        print(f"  ⚠️  {warning}")

    await orchestrator.close()


async def round_trip(json_path: str, output_dir: str = "output"):
    orchestrator = ExtractionOrchestrator(auto_initialize=False)
    document = json.loads(Path(json_path).read_text(encoding="utf-8"))
    output_path = Path(output_dir) / f"{Path(json_path).stem}_rebuilt.pptx"

    prs = await orchestrator.execute("reconstruct", document=document, output_path=str(output_path), skip_failed=True)
    print(f"✅ Rebuilt {len(prs.slides)} slides -> {output_path}")


if __name__ == "__main__":
    # asyncio.run(extract_assets("input/input_1.pptx"))
    json_file = asyncio.run(extract_structure("input/input_1.pptx"))
    asyncio.run(round_trip(str(json_file)))
