import json

from export_data import build_export, run_and_export


def test_build_export_structure(inputs):
    data = build_export(inputs, num_simulations=10, start_year=2025)

    assert data['params'] == inputs.to_dict()
    assert 'yearly_projections' not in data['projection']['summary']
    assert data['projection']['yearly'][0]['year'] == 2025
    assert len(data['projection']['yearly']) == 61

    percentiles = data['monte_carlo']['percentiles']
    assert percentiles['ages'][0] == 30
    assert len(percentiles['p50']) == len(percentiles['ages'])

    summary = data['monte_carlo']['summary']
    assert summary['num_simulations'] == 10
    assert summary['median_final'] == percentiles['p50'][-1]


def test_run_and_export_writes_json(inputs, tmp_path, capsys):
    output = tmp_path / 'nested' / 'data.json'
    data = run_and_export(inputs.to_dict(), num_simulations=10, output_path=str(output))

    assert output.exists()
    written = json.loads(output.read_text())
    assert written['projection']['summary'] == data['projection']['summary']
    assert 'Exported to' in capsys.readouterr().out
