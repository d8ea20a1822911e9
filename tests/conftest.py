"""Shared fixtures: a small case directory and a fake ingestor."""

from pathlib import Path

import pytest

from case_forensics.config import Config
from case_forensics.extract.fields import classify_page_type
from case_forensics.index.store import IndexStore
from case_forensics.ingest.classifier import IngestionError, infer_volume_number
from case_forensics.models import IndexingProgress, Page, PageMetadata, Phase, Volume

SHARED = (
    "Следствием установлено, что гражданин Сидоров Семен Семенович, находясь в состоянии "
    "алкогольного опьянения, в ночь с пятого на шестое марта две тысячи двадцать четвертого "
    "года проник в помещение склада, расположенного по улице Заводской, откуда тайно похитил "
    "имущество на общую сумму сто двадцать тысяч рублей. Своими действиями Сидоров Семен "
    "Семенович причинил потерпевшему значительный материальный ущерб, после чего с места "
    "преступления скрылся и распорядился похищенным имуществом по своему усмотрению. Вина "
    "подтверждается показаниями свидетелей, протоколом осмотра места происшествия и "
    "заключением товароведческой экспертизы."
)

PAGES: dict[str, list[str]] = {
    "volume_1.pdf": [
        "Протокол допроса свидетеля Иванова. Свидетель показал, что видел обвиняемого.",
        "Обвинительное заключение. " + SHARED,
        "Постановление о назначении экспертизы по уголовному делу № 1-23/2024.",
    ],
    "Volume_2.PDF": [
        "Приговор. Ленинский районный суд, судья Петрова Анна Сергеевна. "
        "Уголовное дело № 1-23/2024, 15 марта 2024 года. Суд постановил признать "
        "Сидорова виновным. " + SHARED,
        "Протокол осмотра места происшествия.",
    ],
}


class FakeIngestor:
    """Stands in for VolumeIngestor: pages come from PAGES by file name."""

    def __init__(self):
        self.processed: list[str] = []
        self.released = 0

    def get_volume_metadata(self, pdf_path):
        pdf_path = Path(pdf_path)
        if pdf_path.name not in PAGES:
            raise IngestionError(f"Cannot read {pdf_path}")
        return Volume(
            volume_number=infer_volume_number(pdf_path),
            file_path=str(pdf_path),
            file_size=pdf_path.stat().st_size,
            total_pages=len(PAGES[pdf_path.name]),
        )

    def process_volume(self, volume, use_ocr=True, use_multimodal=False):
        self.processed.append(Path(volume.file_path).name)
        texts = PAGES[Path(volume.file_path).name]
        total = len(texts)
        yield IndexingProgress(Phase.SCANNING, 0.0, "scanning", volume.volume_number)
        for number, text in enumerate(texts, start=1):
            page = Page(
                volume_number=volume.volume_number,
                page_number=number,
                text=text,
                ocr_confidence=1.0,
                metadata=PageMetadata(document_type=classify_page_type(text)),
            )
            yield IndexingProgress(
                Phase.OCR,
                number / total,
                f"page {number}",
                volume.volume_number,
                current_page=number,
                total_pages=total,
                processed_pages=number,
                page=page,
            )
        yield IndexingProgress(Phase.COMPLETED, 1.0, "done", volume.volume_number)

    def convert_page_to_image(self, pdf_path, page_number):
        raise OSError("no renderer in tests")

    def release_ocr(self):
        self.released += 1


@pytest.fixture
def case_dir(tmp_path):
    volumes = tmp_path / "volumes"
    (volumes / "sub").mkdir(parents=True)
    (volumes / "volume_1.pdf").write_bytes(b"%PDF-1.4 one")
    (volumes / "sub" / "Volume_2.PDF").write_bytes(b"%PDF-1.4 two")
    (volumes / "broken.pdf").write_bytes(b"garbage")
    (volumes / "notes.txt").write_text("not a volume")
    return volumes


@pytest.fixture
def config(tmp_path, case_dir):
    return Config(
        volumes_directory=case_dir,
        cache_dir=tmp_path / "cache",
        index_path=tmp_path / "index.sqlite",
        context_pages=3,
    )


@pytest.fixture
def ingestor():
    return FakeIngestor()


@pytest.fixture
def store(config, ingestor):
    with IndexStore(config, ingestor=ingestor) as store:
        yield store


@pytest.fixture
def indexed(store):
    list(store.update())
    return store
