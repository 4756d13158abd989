from __future__ import annotations
import re
import uuid
from dataclasses import dataclass, field
from typing import Mapping, Sequence
import structlog
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from motoverse.models.catalog import CarMake, CarModel, CarGeneration

log = structlog.get_logger()


def _ci(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Brand slug -> ordered family patterns; first match wins, group 1 is the family label.
MODEL_PATTERNS: dict[str, tuple[re.Pattern, ...]] = {
    "mercedes-benz": _ci(
        r"\b(A-Class|B-Class|C-Class|E-Class|S-Class|G-Class|V-Class|X-Class)\b",
        r"\b(CLA|CLS|GLA|GLB|GLC|GLE|GLS|GLK|ML|GL)\b",
        r"\b(SL|SLC|SLK|SLR|SLS|AMG GT)\b",
        r"\b(Maybach)\b",
        r"\b(Sprinter|Vito|Citan|Metris)\b",
        r"\b(EQ[A-Z])\b",
        r"\b(CLK|CL)\b",
    ),
    "bmw": _ci(
        r"\b([1-8] Series)\b",
        r"\b(X[1-7]|Z[1-4]|i[3-8]|iX[1-3]?)\b",
        r"\b(M[1-8]|M[2-8] (?:CS|Competition|GTS))\b",
        r"\b(i\d+)\b",
    ),
    "audi": _ci(
        r"\b(A[1-8]|S[1-8]|RS[1-7])\b",
        r"\b(Q[2-8]|SQ[2-8]|RSQ[3-8])\b",
        r"\b(TT|R8|e-tron)\b",
        r"\b(Quattro)\b",
    ),
    "volkswagen": _ci(
        r"\b(Golf|Polo|Passat|Arteon|Jetta|Beetle|Scirocco)\b",
        r"\b(Tiguan|Touareg|T-Roc|T-Cross|Atlas|Taos)\b",
        r"\b(ID\.[1-9]|ID\.\d+)\b",
        r"\b(Transporter|Multivan|Caravelle|California)\b",
        r"\b(Up|UP!|e-Up)\b",
        r"\b(Phaeton|Eos|CC)\b",
    ),
    "porsche": _ci(
        r"\b(911|Carrera|Turbo|GT[2-4]|Targa)\b",
        r"\b(Cayenne|Macan|Panamera|Taycan)\b",
        r"\b(Boxster|Cayman)\b",
        r"\b(918|Carrera GT)\b",
    ),
    "toyota": _ci(
        r"\b(Corolla|Camry|Avalon|Crown)\b",
        r"\b(RAV4|Highlander|4Runner|Land Cruiser|Sequoia)\b",
        r"\b(Prius|Yaris|Supra|GR86|Celica|MR2)\b",
        r"\b(Tacoma|Tundra|Hilux)\b",
        r"\b(Sienna|Venza|bZ4X)\b",
    ),
    "honda": _ci(
        r"\b(Civic|Accord|Insight)\b",
        r"\b(CR-V|HR-V|Pilot|Passport|Ridgeline)\b",
        r"\b(Fit|Jazz|City)\b",
        r"\b(NSX|S2000|Integra|Prelude)\b",
        r"\b(Odyssey|Element)\b",
    ),
    "nissan": _ci(
        r"\b(Sentra|Altima|Maxima)\b",
        r"\b(Rogue|Pathfinder|Armada|Murano|Kicks|X-Trail)\b",
        r"\b(GT-R|370Z|350Z|Z)\b",
        r"\b(Leaf|Ariya)\b",
        r"\b(Frontier|Titan|Navara)\b",
        r"\b(Juke|Qashqai)\b",
        r"\b(Skyline|Silvia)\b",
    ),
    "ford": _ci(
        r"\b(Mustang|Focus|Fiesta|Fusion|Taurus)\b",
        r"\b(F-150|F-250|F-350|Ranger|Maverick)\b",
        r"\b(Explorer|Expedition|Bronco|Escape|Edge)\b",
        r"\b(GT|GT40)\b",
        r"\b(Mach-E|Lightning)\b",
        r"\b(Transit|E-Series)\b",
    ),
    "chevrolet": _ci(
        r"\b(Camaro|Corvette|Malibu|Impala)\b",
        r"\b(Silverado|Colorado|Avalanche)\b",
        r"\b(Tahoe|Suburban|Traverse|Equinox|Trailblazer|Blazer)\b",
        r"\b(Bolt|Volt)\b",
        r"\b(Spark|Cruze|Sonic)\b",
    ),
    "ferrari": _ci(
        r"\b(F[1-9]\d*|SF\d+)\b",
        r"\b(458|488|296|Roma|Portofino|812|F8)\b",
        r"\b(California|LaFerrari|Enzo|Testarossa)\b",
        r"\b(Purosangue|Daytona|Monza)\b",
        r"\b(GTC4|FF|612|599|575|550)\b",
    ),
    "lamborghini": _ci(
        r"\b(Huracán|Huracan|Gallardo)\b",
        r"\b(Aventador|Murciélago|Murcielago|Diablo|Countach)\b",
        r"\b(Urus|LM002)\b",
        r"\b(Revuelto|Sián|Sian|Centenario)\b",
    ),
    "mazda": _ci(
        r"\b(Mazda[2-6]|MX-5|MX-30|CX-[3-9]0?)\b",
        r"\b(RX-[7-8])\b",
        r"\b(Miata)\b",
    ),
    "subaru": _ci(
        r"\b(Impreza|WRX|STI|Legacy|Outback)\b",
        r"\b(Forester|Crosstrek|Ascent|Solterra)\b",
        r"\b(BRZ)\b",
    ),
    "hyundai": _ci(
        r"\b(Elantra|Sonata|Accent)\b",
        r"\b(Tucson|Santa Fe|Palisade|Venue|Kona)\b",
        r"\b(Ioniq|Genesis|Veloster)\b",
        r"\b(i\d+|i\d+ N)\b",
    ),
    "kia": _ci(
        r"\b(Rio|Forte|K5|Optima|Stinger)\b",
        r"\b(Sportage|Sorento|Telluride|Seltos|Soul)\b",
        r"\b(EV[6-9]|Niro)\b",
    ),
    "tesla": _ci(
        r"\b(Model [SX3Y]|Roadster|Cybertruck|Semi)\b",
    ),
    "volvo": _ci(
        r"\b(S[4-9]0|V[4-9]0|XC[4-9]0)\b",
        r"\b(C[34]0|EX[39]0)\b",
        r"\b(Polestar)\b",
    ),
    "jaguar": _ci(
        r"\b(XE|XF|XJ|F-Type|F-Pace|E-Pace|I-Pace)\b",
        r"\b(S-Type|X-Type)\b",
        r"\b(E-Type|XK|XKR)\b",
    ),
    "land-rover": _ci(
        r"\b(Range Rover|Defender|Discovery|Freelander)\b",
        r"\b(Evoque|Velar|Sport)\b",
    ),
    "lexus": _ci(
        r"\b(IS|ES|GS|LS)\b",
        r"\b(NX|RX|GX|LX|UX)\b",
        r"\b(LC|RC|SC|LFA)\b",
        r"\b(RZ)\b",
    ),
    "alfa-romeo": _ci(
        r"\b(Giulia|Stelvio|Giulietta|MiTo)\b",
        r"\b(4C|8C|Tonale)\b",
        r"\b(Spider|GTV|Brera)\b",
    ),
    "maserati": _ci(
        r"\b(Ghibli|Quattroporte|Levante|GranTurismo|MC20)\b",
    ),
    "aston-martin": _ci(
        r"\b(DB[579]|DB1[012]|DBS)\b",
        r"\b(Vantage|Vanquish|Rapide|DBX)\b",
        r"\b(Valkyrie|Valhalla)\b",
    ),
    "bentley": _ci(
        r"\b(Continental|Flying Spur|Bentayga|Mulsanne)\b",
    ),
    "rolls-royce": _ci(
        r"\b(Phantom|Ghost|Wraith|Dawn|Cullinan|Spectre)\b",
    ),
    "mclaren": _ci(
        r"\b(720S|750S|765LT|570S|600LT|540C)\b",
        r"\b(P1|Senna|Speedtail|Elva|Artura)\b",
        r"\b(GT)\b",
    ),
    "dodge": _ci(
        r"\b(Charger|Challenger|Viper|Dart)\b",
        r"\b(Durango|Journey|Hornet)\b",
        r"\b(Ram)\b",
    ),
    "jeep": _ci(
        r"\b(Wrangler|Grand Cherokee|Cherokee|Compass|Renegade)\b",
        r"\b(Gladiator|Wagoneer|Commander)\b",
    ),
    "cadillac": _ci(
        r"\b(CT[4-6]|CTS|ATS|XTS)\b",
        r"\b(XT[4-6]|Escalade|Lyriq)\b",
        r"\b(Eldorado|DeVille|Seville)\b",
    ),
    "mini": _ci(
        r"\b(Cooper|Countryman|Clubman|Paceman)\b",
        r"\b(Convertible|Hardtop|Hatchback)\b",
    ),
    "mitsubishi": _ci(
        r"\b(Lancer|Galant|Eclipse)\b",
        r"\b(Outlander|Pajero|Montero|ASX)\b",
        r"\b(Evolution|Evo)\b",
    ),
    "infiniti": _ci(
        r"\b(Q[35-7]0|QX[5-8]0)\b",
        r"\b(G[35-7]|M[35-7]|FX[35-7])\b",
    ),
    "acura": _ci(
        r"\b(TLX|ILX|RLX|Integra)\b",
        r"\b(MDX|RDX|ZDX)\b",
        r"\b(NSX)\b",
    ),
    "genesis": _ci(
        r"\b(G[78]0|G[89]0|GV[78]0)\b",
    ),
    # model numbers only; case does not matter for digits
    "peugeot": (re.compile(r"\b(\d{3,4})\b"),),
    "renault": _ci(
        r"\b(Clio|Megane|Captur|Kadjar|Koleos|Scenic)\b",
        r"\b(Twingo|Zoe|Talisman|Arkana)\b",
    ),
    "citroen": _ci(
        r"\b(C[1-6]|DS[3-9])\b",
        r"\b(Berlingo|C3 Aircross|C5 Aircross)\b",
    ),
    "fiat": _ci(
        r"\b(500|Panda|Tipo|Punto)\b",
        r"\b(500X|500L|124 Spider)\b",
    ),
    "seat": _ci(
        r"\b(Ibiza|Leon|Arona|Ateca|Tarraco)\b",
        r"\b(Cupra)\b",
    ),
    "skoda": _ci(
        r"\b(Octavia|Superb|Fabia|Scala)\b",
        r"\b(Kodiaq|Karoq|Kamiq|Enyaq)\b",
    ),
    "opel": _ci(
        r"\b(Corsa|Astra|Insignia|Mokka|Crossland|Grandland)\b",
    ),
}

_LEADING_YEAR = re.compile(r"^\d{4}\s+")


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def extract_model_family(
    brand_slug: str, name: str, patterns: Mapping[str, Sequence[re.Pattern]] = MODEL_PATTERNS
) -> str | None:
    for pattern in patterns.get(brand_slug, ()):
        m = pattern.search(name)
        if m:
            label = (m.group(1) if m.groups() else m.group(0)) or m.group(0)
            return label.strip()
    return None


def disambiguate(gen_name: str, source_model_name: str, taken: set[str]) -> str:
    """Pick a generation name that is free in the target model."""
    if gen_name not in taken:
        return gen_name
    suffix = _LEADING_YEAR.sub("", source_model_name).strip()
    candidate = f"{gen_name} ({suffix})"
    counter = 2
    while candidate in taken:
        candidate = f"{gen_name} ({suffix} #{counter})"
        counter += 1
    return candidate


@dataclass(frozen=True)
class _Gen:
    id: uuid.UUID
    name: str
    display_name: str | None


@dataclass(frozen=True)
class _Model:
    id: uuid.UUID
    name: str
    slug: str
    generations: tuple[_Gen, ...]


@dataclass
class ReorganizeSummary:
    families_created: int = 0
    generations_merged: int = 0
    models_deleted: int = 0
    empty_models_deleted: int = 0
    unmatched_models: int = 0
    failures: list[str] = field(default_factory=list)


def group_by_family(brand_slug: str, models: Sequence[_Model], patterns=MODEL_PATTERNS) -> tuple[dict[str, list[_Model]], list[_Model]]:
    """Match each model by its own name, falling back to its generations' display names."""
    groups: dict[str, list[_Model]] = {}
    unmatched: list[_Model] = []
    for model in models:
        family = extract_model_family(brand_slug, model.name, patterns)
        if not family:
            for gen in model.generations:
                if gen.display_name:
                    family = extract_model_family(brand_slug, gen.display_name, patterns)
                    if family:
                        break
        if family:
            groups.setdefault(family, []).append(model)
        else:
            unmatched.append(model)
    return groups, unmatched


async def _load_models(session: AsyncSession, make_id: uuid.UUID) -> list[_Model]:
    # Snapshot into plain values: later rollbacks expire ORM state
    rows = (await session.scalars(
        select(CarModel)
        .where(CarModel.make_id == make_id)
        .options(selectinload(CarModel.generations))
        .order_by(CarModel.name, CarModel.id)
        .execution_options(populate_existing=True)
    )).all()
    return [
        _Model(
            id=m.id, name=m.name, slug=m.slug,
            generations=tuple(
                _Gen(id=g.id, name=g.name, display_name=g.display_name)
                for g in sorted(m.generations, key=lambda g: (g.name, str(g.id)))
            ),
        )
        for m in rows
    ]


async def _ensure_family_model(session: AsyncSession, make_id: uuid.UUID, family: str, summary: ReorganizeSummary) -> uuid.UUID:
    slug = slugify(family)
    existing = await session.scalar(select(CarModel.id).where(CarModel.make_id == make_id, CarModel.slug == slug))
    if existing:
        return existing
    model_id = uuid.uuid4()
    session.add(CarModel(id=model_id, make_id=make_id, name=family, slug=slug))
    await session.commit()
    summary.families_created += 1
    log.info("family_created", family=family, slug=slug)
    return model_id


async def _merge_source(session: AsyncSession, target_id: uuid.UUID, source: _Model, family: str, summary: ReorganizeSummary) -> None:
    taken = set((await session.scalars(select(CarGeneration.name).where(CarGeneration.model_id == target_id))).all())
    moved = 0
    for gen in source.generations:
        new_name = disambiguate(gen.name, source.name, taken)
        try:
            await session.execute(
                update(CarGeneration).where(CarGeneration.id == gen.id).values(model_id=target_id, name=new_name)
            )
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            summary.failures.append(f"generation:{gen.id}")
            log.warning("generation_move_failed", generation_id=str(gen.id), source=source.name, error=str(e))
            continue
        taken.add(new_name)
        moved += 1
    if moved:
        summary.generations_merged += moved
        log.info("generations_merged", count=moved, source=source.name, family=family)

    remaining = await session.scalar(select(func.count(CarGeneration.id)).where(CarGeneration.model_id == source.id))
    if remaining:
        log.warning("source_model_kept", source=source.name, remaining=int(remaining))
        return
    try:
        await session.execute(delete(CarModel).where(CarModel.id == source.id))
        await session.commit()
        summary.models_deleted += 1
    except SQLAlchemyError as e:
        await session.rollback()
        summary.failures.append(f"model:{source.id}")
        log.warning("source_model_delete_failed", source=source.name, error=str(e))


async def delete_empty_models(session: AsyncSession) -> int:
    has_gen = select(CarGeneration.id).where(CarGeneration.model_id == CarModel.id).exists()
    empty_ids = (await session.scalars(select(CarModel.id).where(~has_gen))).all()
    if not empty_ids:
        return 0
    await session.execute(delete(CarModel).where(CarModel.id.in_(empty_ids)))
    await session.commit()
    return len(empty_ids)


async def reorganize_model_families(
    session: AsyncSession, patterns: Mapping[str, Sequence[re.Pattern]] = MODEL_PATTERNS
) -> ReorganizeSummary:
    """Collapse loosely imported models into one canonical model per family.

    Each step commits on its own; a failing generation move or model delete is
    rolled back, recorded and skipped so the batch keeps going. The steps are
    not isolated from concurrent writers.
    """
    summary = ReorganizeSummary()
    makes = (await session.execute(select(CarMake.id, CarMake.slug, CarMake.name).order_by(CarMake.name))).all()
    log.info("reorganize_started", makes=len(makes))

    for make_id, make_slug, make_name in makes:
        if make_slug not in patterns:
            continue
        models = await _load_models(session, make_id)
        if not models:
            continue
        log.info("make_scanned", make=make_name, models=len(models))

        groups, unmatched = group_by_family(make_slug, models, patterns)
        for family, members in groups.items():
            if len(members) <= 1:
                continue
            try:
                target_id = await _ensure_family_model(session, make_id, family, summary)
            except SQLAlchemyError as e:
                await session.rollback()
                summary.failures.append(f"family:{make_slug}/{family}")
                log.warning("family_create_failed", make=make_name, family=family, error=str(e))
                continue
            for source in members:
                if source.id == target_id:
                    continue
                await _merge_source(session, target_id, source, family, summary)

        if unmatched:
            summary.unmatched_models += len(unmatched)
            log.info("models_unmatched", make=make_name, count=len(unmatched))

    summary.empty_models_deleted = await delete_empty_models(session)
    log.info(
        "reorganize_complete",
        families_created=summary.families_created,
        generations_merged=summary.generations_merged,
        models_deleted=summary.models_deleted,
        empty_models_deleted=summary.empty_models_deleted,
        unmatched_models=summary.unmatched_models,
        failures=len(summary.failures),
    )
    return summary
