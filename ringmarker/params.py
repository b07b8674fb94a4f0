"""Detection parameters, their defaults and loading them from an XML archive."""

from __future__ import annotations

import logging
import os
import warnings
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

logger = logging.getLogger(__name__)


class Weight(IntEnum):
    """Weighting schemes applied to edge points during robust estimation."""

    NO_WEIGHT = 0
    INV_GRAD_WEIGHT = 1
    INV_SQRT_GRAD_WEIGHT = 2
    INV_SQUARE_GRAD_WEIGHT = 3


DEFAULT_WEIGHT = Weight.INV_GRAD_WEIGHT

DEFAULT_DIST_SEARCH = 30
DEFAULT_N_CROWNS = 3
DEFAULT_N_CIRCLES = 6
DEFAULT_THR_GRADIENT_MAG_IN_VOTE = 2500
DEFAULT_ANGLE_VOTING = 0.0
DEFAULT_RATIO_VOTING = 4.0
DEFAULT_AVERAGE_VOTE_MIN = 0.0
DEFAULT_THR_MEDIAN_DISTANCE_ELLIPSE = 3.0
DEFAULT_MAXIMUM_NB_SEEDS = 500
DEFAULT_MAXIMUM_NB_CANDIDATES_LOOP_TWO = 40
DEFAULT_CANNY_THR_LOW = 0.01
DEFAULT_CANNY_THR_HIGH = 0.04
DEFAULT_MIN_POINTS_SEGMENT_CANDIDATE = 10
DEFAULT_MIN_VOTES_TO_SELECT_CANDIDATE = 3
DEFAULT_THRESH_ROBUST_ESTIMATION_OF_OUTER_ELLIPSE = 30.0
DEFAULT_ELLIPSE_GROWING_ELLIPTIC_HULL_WIDTH = 2.3
DEFAULT_WINDOW_SIZE_ON_INNER_ELLIPTIC_SEGMENT = 20
DEFAULT_NUMBER_OF_MULTIRES_LAYERS = 4
DEFAULT_NUMBER_OF_PROCESSED_MULTIRES_LAYERS = 4
DEFAULT_N_SAMPLES_OUTER_ELLIPSE = 150
DEFAULT_NUM_CUTS_IN_IDENT_STEP = 22
DEFAULT_NUM_SAMPLES_OUTER_EDGE_POINTS_REFINEMENT = 20
DEFAULT_CUTS_SELECTION_TRIALS = 500
DEFAULT_SAMPLE_CUT_LENGTH = 100
# Must be odd, otherwise the ellipse center is not among the nearby points.
DEFAULT_IMAGED_CENTER_N_GRID_SAMPLE = 5
DEFAULT_IMAGED_CENTER_NEIGHBOUR_SIZE = 0.20
DEFAULT_MIN_IDENT_PROBA = 1e-6
DEFAULT_USE_LM_DIF = True
DEFAULT_SEARCH_FOR_ANOTHER_SEGMENT = True
DEFAULT_WRITE_OUTPUT = False
DEFAULT_DO_IDENTIFICATION = True
DEFAULT_MAX_EDGES = 20000
DEFAULT_USE_CUDA = False

OVERRIDE_ENV_VAR = "RINGMARKER_PARAMETERS_OVERRIDE"
DEFAULT_OVERRIDE_PATH = "./RingMarkerParametersOverride.xml"


@dataclass
class Parameters:
    """All tunable settings of the marker detection.

    The number of crowns is normally the only one worth changing; the number
    of detectable circles follows from it.
    """

    n_crowns: int = DEFAULT_N_CROWNS
    canny_thr_low: float = DEFAULT_CANNY_THR_LOW
    canny_thr_high: float = DEFAULT_CANNY_THR_HIGH
    dist_search: int = DEFAULT_DIST_SEARCH
    thr_gradient_mag_in_vote: int = DEFAULT_THR_GRADIENT_MAG_IN_VOTE
    angle_voting: float = DEFAULT_ANGLE_VOTING
    ratio_voting: float = DEFAULT_RATIO_VOTING
    average_vote_min: float = DEFAULT_AVERAGE_VOTE_MIN
    thr_median_distance_ellipse: float = DEFAULT_THR_MEDIAN_DISTANCE_ELLIPSE
    maximum_nb_seeds: int = DEFAULT_MAXIMUM_NB_SEEDS
    maximum_nb_candidates_loop_two: int = DEFAULT_MAXIMUM_NB_CANDIDATES_LOOP_TWO
    min_points_segment_candidate: int = DEFAULT_MIN_POINTS_SEGMENT_CANDIDATE
    min_votes_to_select_candidate: int = DEFAULT_MIN_VOTES_TO_SELECT_CANDIDATE
    thresh_robust_estimation_of_outer_ellipse: float = (
        DEFAULT_THRESH_ROBUST_ESTIMATION_OF_OUTER_ELLIPSE
    )
    ellipse_growing_elliptic_hull_width: float = DEFAULT_ELLIPSE_GROWING_ELLIPTIC_HULL_WIDTH
    window_size_on_inner_elliptic_segment: int = DEFAULT_WINDOW_SIZE_ON_INNER_ELLIPTIC_SEGMENT
    number_of_multires_layers: int = DEFAULT_NUMBER_OF_MULTIRES_LAYERS
    number_of_processed_multires_layers: int = DEFAULT_NUMBER_OF_PROCESSED_MULTIRES_LAYERS
    n_samples_outer_ellipse: int = DEFAULT_N_SAMPLES_OUTER_ELLIPSE
    num_cuts_in_ident_step: int = DEFAULT_NUM_CUTS_IN_IDENT_STEP
    num_samples_outer_edge_points_refinement: int = (
        DEFAULT_NUM_SAMPLES_OUTER_EDGE_POINTS_REFINEMENT
    )
    cuts_selection_trials: int = DEFAULT_CUTS_SELECTION_TRIALS
    sample_cut_length: int = DEFAULT_SAMPLE_CUT_LENGTH
    imaged_center_n_grid_sample: int = DEFAULT_IMAGED_CENTER_N_GRID_SAMPLE
    imaged_center_neighbour_size: float = DEFAULT_IMAGED_CENTER_NEIGHBOUR_SIZE
    min_ident_proba: float = DEFAULT_MIN_IDENT_PROBA
    use_lm_dif: bool = DEFAULT_USE_LM_DIF
    search_for_another_segment: bool = DEFAULT_SEARCH_FOR_ANOTHER_SEGMENT
    write_output: bool = DEFAULT_WRITE_OUTPUT
    do_identification: bool = DEFAULT_DO_IDENTIFICATION
    max_edges: int = DEFAULT_MAX_EDGES
    use_cuda: bool = DEFAULT_USE_CUDA
    debug_dir: str = ""

    @property
    def n_circles(self) -> int:
        """Number of circles the markers are made of: two per crown."""
        return 2 * self.n_crowns

    def set_debug_dir(self, debug_dir: str | os.PathLike[str]) -> None:
        """Use *debug_dir* for debug output, creating it if it does not exist."""
        directory = Path(debug_dir)
        if directory.exists():
            logger.info("Directory %s already exists.", directory)
        else:
            directory.mkdir(parents=True)
        self.debug_dir = str(directory)

    def set_use_cuda(self, value: bool) -> None:
        """Request the GPU implementation; there is none, so a request is refused."""
        if value:
            warnings.warn(
                "built without GPU support, so it cannot be enabled",
                RuntimeWarning,
                stacklevel=2,
            )


def _parse_bool(text: str) -> bool:
    value = text.strip().lower()
    if value in ("1", "true"):
        return True
    if value in ("0", "false"):
        return False
    raise ValueError(f"not a boolean: {text!r}")


def _parse_int(text: str) -> int:
    return int(text.strip())


def _parse_float(text: str) -> float:
    return float(text.strip())


# Archive order and element names, with the converter for each value.
_XML_FIELDS: tuple[tuple[str, str, Callable[[str], object]], ...] = (
    ("canny_thr_low", "_cannyThrLow", _parse_float),
    ("canny_thr_high", "_cannyThrHigh", _parse_float),
    ("dist_search", "_distSearch", _parse_int),
    ("thr_gradient_mag_in_vote", "_thrGradientMagInVote", _parse_int),
    ("angle_voting", "_angleVoting", _parse_float),
    ("ratio_voting", "_ratioVoting", _parse_float),
    ("average_vote_min", "_averageVoteMin", _parse_float),
    ("thr_median_distance_ellipse", "_thrMedianDistanceEllipse", _parse_float),
    ("maximum_nb_seeds", "_maximumNbSeeds", _parse_int),
    ("maximum_nb_candidates_loop_two", "_maximumNbCandidatesLoopTwo", _parse_int),
    ("n_crowns", "_nCrowns", _parse_int),
    ("min_points_segment_candidate", "_minPointsSegmentCandidate", _parse_int),
    ("min_votes_to_select_candidate", "_minVotesToSelectCandidate", _parse_int),
    (
        "thresh_robust_estimation_of_outer_ellipse",
        "_threshRobustEstimationOfOuterEllipse",
        _parse_float,
    ),
    ("ellipse_growing_elliptic_hull_width", "_ellipseGrowingEllipticHullWidth", _parse_float),
    ("window_size_on_inner_elliptic_segment", "_windowSizeOnInnerEllipticSegment", _parse_int),
    ("number_of_multires_layers", "_numberOfMultiresLayers", _parse_int),
    ("number_of_processed_multires_layers", "_numberOfProcessedMultiresLayers", _parse_int),
    ("n_samples_outer_ellipse", "_nSamplesOuterEllipse", _parse_int),
    ("num_cuts_in_ident_step", "_numCutsInIdentStep", _parse_int),
    (
        "num_samples_outer_edge_points_refinement",
        "_numSamplesOuterEdgePointsRefinement",
        _parse_int,
    ),
    ("cuts_selection_trials", "_cutsSelectionTrials", _parse_int),
    ("sample_cut_length", "_sampleCutLength", _parse_int),
    ("imaged_center_n_grid_sample", "_imagedCenterNGridSample", _parse_int),
    ("imaged_center_neighbour_size", "_imagedCenterNeighbourSize", _parse_float),
    ("min_ident_proba", "_minIdentProba", _parse_float),
    ("use_lm_dif", "_useLMDif", _parse_bool),
    ("search_for_another_segment", "_searchForAnotherSegment", _parse_bool),
    ("write_output", "_writeOutput", _parse_bool),
    ("do_identification", "_doIdentification", _parse_bool),
    ("max_edges", "_maxEdges", _parse_int),
    ("use_cuda", "_useCuda", _parse_bool),
)


def _read_archive(path: str | os.PathLike[str], n_crowns: int) -> Parameters:
    try:
        tree = ET.parse(path)
    except ET.ParseError as exc:
        raise ValueError(f"malformed parameter file {os.fspath(path)!r}: {exc}") from exc

    first_tag = _XML_FIELDS[0][1]
    container = next(
        (elem for elem in tree.getroot().iter() if elem.find(first_tag) is not None),
        None,
    )
    if container is None:
        raise ValueError(f"no parameter record in {os.fspath(path)!r}")

    params = Parameters(n_crowns)
    for attr, tag, convert in _XML_FIELDS:
        child = container.find(tag)
        if child is None or child.text is None:
            raise ValueError(f"parameter {tag} missing from {os.fspath(path)!r}")
        try:
            value = convert(child.text)
        except ValueError as exc:
            raise ValueError(f"bad value for {tag}: {child.text!r}") from exc
        setattr(params, attr, value)
    return params


def load_parameters(path: str | os.PathLike[str], n_crowns: int = DEFAULT_N_CROWNS) -> Parameters:
    """Read parameters from an XML archive that must describe *n_crowns* crowns."""
    if not Path(path).exists():
        raise FileNotFoundError(f'The input parameter file "{os.fspath(path)}" is missing')
    params = _read_archive(path, n_crowns)
    if params.n_crowns != n_crowns:
        raise ValueError(
            f"parameter file describes {params.n_crowns} crowns, expected {n_crowns}"
        )
    return params


def load_override(environ: Mapping[str, str] | None = None) -> Parameters | None:
    """Load the override parameter file, or return None when there is none.

    Its path is taken from the override environment variable, falling back to
    a file of the default name in the working directory.
    """
    env = os.environ if environ is None else environ
    path = env.get(OVERRIDE_ENV_VAR) or DEFAULT_OVERRIDE_PATH
    if not Path(path).is_file():
        return None
    params = _read_archive(path, DEFAULT_N_CROWNS)
    logger.info("loaded parameters override file: %s", path)
    return params