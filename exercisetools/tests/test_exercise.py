from pathlib import Path

import pytest
from pydantic import ValidationError

from exercisetools import exercise
from exercisetools.errors import MalformedExercise

EXERCISES = Path(__file__).parent / 'exercises'


@pytest.fixture
def map_conf():
    return {
        'id': 'map-upcase',
        'language': 'ruby',
        'template': 'words = ["ruby", "python", "java"].sample(2)\n# print the words in upper case\n',
        'fixed_lines': [0],
        'scenarios': [
            {
                'replacements': {0: 'words = ["apple", "banana", "cherry"]'},
                'expected_output': '["APPLE", "BANANA", "CHERRY"]\n',
            }
        ],
    }


def test_parse_minimal(map_conf):
    ex = exercise.parse_exercise(map_conf)
    assert ex.id == 'map-upcase'
    assert ex.template_lines == ('words = ["ruby", "python", "java"].sample(2)', '# print the words in upper case')
    assert ex.fixed_line_indices == frozenset({0})
    assert ex.time_limit is None
    assert ex.scenarios[0].replacement_by_line == {0: 'words = ["apple", "banana", "cherry"]'}


def test_template_as_list(map_conf):
    map_conf['template'] = ['x = 1', 'puts x']
    ex = exercise.parse_exercise(map_conf)
    assert ex.template_lines == ('x = 1', 'puts x')


def test_field_names_accepted():
    data = {
        'id': 'plain',
        'template_lines': ['x = 1'],
        'fixed_line_indices': [0],
        'scenarios': [{'replacement_by_line': {0: 'x = 2'}, 'expected_output': '2\n'}],
    }
    ex = exercise.parse_exercise(data)
    assert ex.scenarios[0].replacement_by_line == {0: 'x = 2'}


def test_scenario_ids(map_conf):
    map_conf['scenarios'].append({'id': 'named', 'expected_output': ''})
    ex = exercise.parse_exercise(map_conf)
    assert ex.scenario_id(0) == 'scenario-1'
    assert ex.scenario_id(1) == 'named'


def test_duplicate_scenario_ids_fail(map_conf):
    map_conf['scenarios'] = [{'id': 'a', 'expected_output': ''}, {'id': 'a', 'expected_output': ''}]
    with pytest.raises(MalformedExercise):
        exercise.parse_exercise(map_conf)


def test_fixed_index_out_of_range_fails(map_conf):
    map_conf['fixed_lines'] = [0, 2]
    with pytest.raises(MalformedExercise):
        exercise.parse_exercise(map_conf)


def test_replacement_of_editable_line_fails(map_conf):
    map_conf['scenarios'][0]['replacements'] = {1: 'p 1'}
    with pytest.raises(MalformedExercise, match='not a fixed line'):
        exercise.parse_exercise(map_conf)


def test_no_scenarios_fails(map_conf):
    map_conf['scenarios'] = []
    with pytest.raises(MalformedExercise):
        exercise.parse_exercise(map_conf)


def test_typo_fails(map_conf):
    map_conf['timelimit'] = 3
    with pytest.raises(MalformedExercise):
        exercise.parse_exercise(map_conf)


def test_bad_time_limit_fails(map_conf):
    map_conf['time_limit'] = 0
    with pytest.raises(MalformedExercise):
        exercise.parse_exercise(map_conf)


def test_not_a_mapping_fails():
    with pytest.raises(MalformedExercise):
        exercise.parse_exercise(['id', 'template'])


def test_exercise_is_immutable(map_conf):
    ex = exercise.parse_exercise(map_conf)
    with pytest.raises(ValidationError):
        ex.id = 'other'


def test_load_exercise_file():
    ex = exercise.load_exercise(EXERCISES / 'select_reject.yaml')
    assert ex.id == 'select-reject'
    assert ex.language == 'ruby'
    assert ex.scenarios[0].replacement_by_line == {0: 'numbers = [1, 2, 3, 4, 5, 6]'}
    assert ex.scenarios[0].expected_output == '[2, 4, 6]\n[1, 3, 5]\n'


def test_load_broken_exercise_file():
    with pytest.raises(MalformedExercise):
        exercise.load_exercise(EXERCISES / 'broken.yaml')


def test_load_missing_exercise_file(tmp_path):
    with pytest.raises(MalformedExercise):
        exercise.load_exercise(tmp_path / 'nope.yaml')


def test_submission_from_text():
    assert exercise.Submission.from_text('a\nb\n').source_lines == ('a', 'b')
    assert exercise.Submission.from_text('a\r\nb').source_lines == ('a', 'b')
    assert exercise.Submission.from_text('a\n\n').source_lines == ('a', '')
    assert exercise.Submission.from_text('').source_lines == ()


def test_template_text(map_conf):
    ex = exercise.parse_exercise(map_conf)
    assert ex.template_text() == map_conf['template']
