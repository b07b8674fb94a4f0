import warnings

import pytest

from ringmarker.params import (
    OVERRIDE_ENV_VAR,
    Parameters,
    load_override,
    load_parameters,
)

_DEFAULT_VALUES = [
    ("_cannyThrLow", "0.0099999998"),
    ("_cannyThrHigh", "0.039999999"),
    ("_distSearch", "30"),
    ("_thrGradientMagInVote", "2500"),
    ("_angleVoting", "0"),
    ("_ratioVoting", "4"),
    ("_averageVoteMin", "0"),
    ("_thrMedianDistanceEllipse", "3"),
    ("_maximumNbSeeds", "500"),
    ("_maximumNbCandidatesLoopTwo", "40"),
    ("_nCrowns", "3"),
    ("_minPointsSegmentCandidate", "10"),
    ("_minVotesToSelectCandidate", "3"),
    ("_threshRobustEstimationOfOuterEllipse", "30"),
    ("_ellipseGrowingEllipticHullWidth", "2.3"),
    ("_windowSizeOnInnerEllipticSegment", "20"),
    ("_numberOfMultiresLayers", "4"),
    ("_numberOfProcessedMultiresLayers", "4"),
    ("_nSamplesOuterEllipse", "150"),
    ("_numCutsInIdentStep", "22"),
    ("_numSamplesOuterEdgePointsRefinement", "20"),
    ("_cutsSelectionTrials", "500"),
    ("_sampleCutLength", "100"),
    ("_imagedCenterNGridSample", "5"),
    ("_imagedCenterNeighbourSize", "0.2"),
    ("_minIdentProba", "1e-06"),
    ("_useLMDif", "1"),
    ("_searchForAnotherSegment", "1"),
    ("_writeOutput", "0"),
    ("_doIdentification", "1"),
    ("_maxEdges", "20000"),
    ("_useCuda", "0"),
]


def _write_archive(path, overrides=None, drop=()):
    values = dict(_DEFAULT_VALUES)
    values.update(overrides or {})
    body = "".join(
        f"\t<{tag}>{values[tag]}</{tag}>\n" for tag, _ in _DEFAULT_VALUES if tag not in drop
    )
    path.write_text(
        '<?xml version="1.0" encoding="UTF-8" standalone="yes" ?>\n'
        '<boost_serialization signature="serialization::archive" version="17">\n'
        '<Params class_id="0" tracking_level="0" version="0">\n'
        f"{body}"
        "</Params>\n"
        "</boost_serialization>\n"
    )
    return path


def test_defaults_match_documented_constants():
    params = Parameters()
    assert params.n_crowns == 3
    assert params.n_circles == 6
    assert params.dist_search == 30
    assert params.thr_gradient_mag_in_vote == 2500
    assert params.num_cuts_in_ident_step == 22
    assert params.imaged_center_n_grid_sample == 5
    assert params.max_edges == 20000
    assert params.use_cuda is False
    assert params.debug_dir == ""


def test_circles_follow_crowns():
    params = Parameters(4)
    assert params.n_circles == 8
    params.n_crowns = 5
    assert params.n_circles == 10


def test_load_defaults_round_trip(tmp_path):
    path = _write_archive(tmp_path / "params.xml")
    loaded = load_parameters(path, 3)
    assert loaded.n_crowns == 3
    assert loaded.canny_thr_low == pytest.approx(Parameters().canny_thr_low)
    assert loaded.imaged_center_neighbour_size == pytest.approx(
        Parameters().imaged_center_neighbour_size
    )
    assert loaded.use_lm_dif is True
    assert loaded.write_output is False
    assert loaded.sample_cut_length == Parameters().sample_cut_length


def test_load_applies_file_values(tmp_path):
    path = _write_archive(
        tmp_path / "params.xml",
        {"_nCrowns": "4", "_maxEdges": "1234", "_writeOutput": "1"},
    )
    loaded = load_parameters(path, 4)
    assert loaded.n_crowns == 4
    assert loaded.n_circles == 8
    assert loaded.max_edges == 1234
    assert loaded.write_output is True


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_parameters(tmp_path / "absent.xml", 3)


def test_load_crown_mismatch(tmp_path):
    path = _write_archive(tmp_path / "params.xml", {"_nCrowns": "4"})
    with pytest.raises(ValueError):
        load_parameters(path, 3)


def test_load_missing_field(tmp_path):
    path = _write_archive(tmp_path / "params.xml", drop=("_sampleCutLength",))
    with pytest.raises(ValueError):
        load_parameters(path, 3)


def test_load_bad_value(tmp_path):
    path = _write_archive(tmp_path / "params.xml", {"_useCuda": "maybe"})
    with pytest.raises(ValueError):
        load_parameters(path, 3)


def test_load_malformed_file(tmp_path):
    path = tmp_path / "params.xml"
    path.write_text("<not closed")
    with pytest.raises(ValueError):
        load_parameters(path, 3)


def test_override_absent_returns_none(tmp_path):
    env = {OVERRIDE_ENV_VAR: str(tmp_path / "nothing.xml")}
    assert load_override(env) is None


def test_override_loaded_from_environment(tmp_path):
    path = _write_archive(tmp_path / "override.xml", {"_distSearch": "77"})
    loaded = load_override({OVERRIDE_ENV_VAR: str(path)})
    assert loaded.dist_search == 77


def test_set_debug_dir_creates_directory(tmp_path):
    params = Parameters()
    target = tmp_path / "a" / "b"
    params.set_debug_dir(target)
    assert target.is_dir()
    assert params.debug_dir == str(target)
    params.set_debug_dir(target)
    assert target.is_dir()


def test_set_use_cuda_refused():
    params = Parameters()
    with pytest.warns(RuntimeWarning):
        params.set_use_cuda(True)
    assert params.use_cuda is False


def test_set_use_cuda_false_is_silent():
    params = Parameters()
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        params.set_use_cuda(False)
    assert caught == []
    assert params.use_cuda is False