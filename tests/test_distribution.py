from libs.matching.distribution import distribute_jobs_with_diversity, get_distribution_stats


def test_respects_source_cap_when_alternatives_exist(make_job):
    jobs = ([make_job(source="adzuna") for _ in range(6)]
            + [make_job(source="reed") for _ in range(3)]
            + [make_job(source="jooble") for _ in range(3)])
    selected = distribute_jobs_with_diversity(jobs, 6, ["London"])
    stats = get_distribution_stats(selected)
    assert len(selected) == 6
    assert stats["source_distribution"] == {"adzuna": 2, "reed": 2, "jooble": 2}


def test_balances_target_cities(make_job):
    jobs = [make_job(city="London") for _ in range(6)] + [make_job(city="Berlin") for _ in range(2)]
    selected = distribute_jobs_with_diversity(jobs, 4, ["London", "Berlin"], max_per_source=10)
    assert sorted(j.city for j in selected) == ["Berlin", "Berlin", "London", "London"]


def test_relaxes_source_cap_to_fill_target(make_job):
    jobs = [make_job(source="adzuna") for _ in range(5)]
    selected = distribute_jobs_with_diversity(jobs, 4, [])
    assert len(selected) == 4
    assert len({j.job_hash for j in selected}) == 4


def test_edge_cases(make_job):
    assert distribute_jobs_with_diversity([], 5, ["London"]) == []
    assert distribute_jobs_with_diversity([make_job()], 0, ["London"]) == []
    assert len(distribute_jobs_with_diversity([make_job(), make_job()], 10, ["London"])) == 2


def test_distribution_stats(make_job):
    jobs = [make_job(city="London", source="reed"), make_job(city=None, source=None)]
    stats = get_distribution_stats(jobs)
    assert stats == {
        "source_distribution": {"reed": 1, "unknown": 1},
        "city_distribution": {"London": 1, "unknown": 1},
        "total_jobs": 2,
    }
